# Test runner that uses the test model in tests/spec.

import os
import json
import re
import traceback
from typing import Any, Dict, Callable, TypedDict, Optional


NULLMARK = '__NULL__'  # Value is JSON null
UNDEFMARK = '__UNDEF__'  # Value is not present (thus, undefined)


class RunPack(TypedDict):
    spec: Dict[str, Any]
    runset: Callable
    runsetflags: Callable
    subject: Optional[Callable]
    utility: Any


def makeRunner(testfile: str, utility: Any):

    def runner(name: str) -> RunPack:
        spec = resolve_spec(name, testfile)
        subject = resolve_subject(name, utility)

        def runsetflags(testspec, flags, testsubject=None):
            flags = resolve_flags(flags)
            testsubject = testsubject or subject

            for entry in testspec['set']:
                try:
                    entry = resolve_entry(entry, flags)
                    args = resolve_args(entry, utility)

                    res = fixJSON(testsubject(*args), flags)
                    entry['res'] = res
                    check_result(entry, res, flags, utility)

                except Exception as err:
                    handle_error(entry, err, utility)

        def runset(testspec, testsubject=None):
            return runsetflags(testspec, {}, testsubject)

        runpack = {
            "spec": spec,
            "runset": runset,
            "runsetflags": runsetflags,
            "subject": subject,
            "utility": utility,
        }

        return runpack

    return runner


def resolve_spec(name: str, testfile: str) -> Dict[str, Any]:
    with open(os.path.join(os.path.dirname(__file__), testfile), 'r', encoding='utf-8') as f:
        alltests = json.load(f)

    return alltests[name] if name in alltests else alltests


def resolve_subject(name: str, utility: Any):
    return getattr(utility, name, None)


def resolve_flags(flags: Dict[str, Any] = None) -> Dict[str, bool]:
    flags = dict(flags or {})
    flags["null"] = flags.get("null", True)
    return flags


def resolve_entry(entry: Dict[str, Any], flags: Dict[str, bool]) -> Dict[str, Any]:
    # A missing 'out' field expects null.
    if 'out' not in entry and 'err' not in entry and flags.get("null", True):
        entry["out"] = NULLMARK
    return entry


def resolve_args(entry, utility):
    if 'args' in entry:
        return [utility.deepclone(arg) for arg in entry['args']]
    if 'in' in entry:
        return [utility.deepclone(entry['in'])]
    return []


def check_result(entry, res, flags, utility):
    if 'err' in entry:
        raise AssertionError(
            f"Expected error: {entry['err']}, got: {utility.stringify(res)}\n"
            f"Entry: {json.dumps(entry, indent=2, default=jsonfallback)}"
        )

    out = fixJSON(entry.get('out'), flags)

    if out == res and utility.isequal(out, res):
        return

    raise AssertionError(
        f"Expected: {out}, got: {res}\n"
        f"Entry: {json.dumps(entry, indent=2, default=jsonfallback)}"
    )


def handle_error(entry, err, utility):
    entry['thrown'] = str(err)
    entry_err = entry.get('err')

    # Failed result checks are reported as they are.
    if isinstance(err, AssertionError):
        raise err

    if entry_err is not None:
        if entry_err is True or matchval(entry_err, str(err), utility):
            return True

        raise AssertionError(
            f"ERROR MATCH: [{utility.stringify(entry_err)}] <=> [{str(err)}]"
        )

    raise AssertionError(
        f"{traceback.format_exc()}\nENTRY: " +
        f"{json.dumps(entry, indent=2, default=jsonfallback)}"
    )


def fixJSON(obj, flags):
    if obj is None:
        return NULLMARK if flags.get("null", True) else None

    elif isinstance(obj, list):
        return [fixJSON(item, flags) for item in obj]
    elif isinstance(obj, dict):
        return {k: fixJSON(v, flags) for k, v in obj.items()}

    return obj


def jsonfallback(obj):
    return f"<non-serializable: {type(obj).__name__}>"


def matchval(check, base, utility):
    if check == UNDEFMARK or check == NULLMARK:
        check = None

    if check == base:
        return True

    if isinstance(check, str):
        base_str = utility.stringify(base)

        # Check for regex pattern with /pattern/ syntax
        regex_match = re.match(r'^/(.+)/$', check)

        if regex_match:
            return re.search(regex_match.group(1), base_str) is not None
        else:
            # Case-insensitive substring check
            return check.lower() in base_str.lower()

    return False


__all__ = [
    'NULLMARK',
    'UNDEFMARK',
    'makeRunner',
]
