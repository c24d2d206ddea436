# Copyright (c) 2025 Voxgig Ltd. MIT LICENSE.
#
# DataKit
# =======
#
# Utility functions to copy and reinterpret in-memory data structures.
# Values are plain Python data: dicts, lists, tuples, sets, scalars,
# plus the Symbol token type defined here.
#
# Main utilities
# - deepclone: independent deep copy of a value, safe for cycles.
# - coercevalues: reinterpret string leaves as the values they spell out.
#
# Minor utilities
# - kindof: classify a value for structural traversal.
# - isprimitive, issymbol, islist, ismap, ismapping, isset, isnode: identify value kinds.
# - isfunc, isstring, isnumber, isint, isfloat, isdate, ispromise: identify leaf types.
# - isempty: undefined values, false, zero, or empty nodes.
# - isequal: deep structural equality.
# - typify, istype: name the type of a value.
# - shallowclone: copy the top level of a value.
# - createtransformer: build a coercion transformer from key rules.
# - tryparse, trystringify: JSON conversion with fallbacks.
# - getprop: safely get a property value by key.
# - strkey: string form of a key.
# - stringify: human-friendly string version of a value.


from typing import *
from collections import defaultdict
from collections.abc import Mapping, MutableMapping, MutableSequence, MutableSet
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from types import MappingProxyType
import copy
import functools
import inspect
import json
import logging
import math
import numbers
import re


log = logging.getLogger(__name__)


# Regex patterns for string coercion, applied with fullmatch.
R_ISO_DATE = re.compile(r'[0-9]{4}-[0-9]{2}-[0-9]{2}(T[0-9]{2}:[0-9]{2}:[0-9]{2}(\.[0-9]{3})?Z?)?')
R_NUMERIC = re.compile(r'-?[0-9]+(\.[0-9]+)?')

# Type names.
S_array = 'array'
S_boolean = 'boolean'
S_bytes = 'bytes'
S_date = 'date'
S_error = 'error'
S_function = 'function'
S_map = 'map'
S_null = 'null'
S_number = 'number'
S_object = 'object'
S_promise = 'promise'
S_regexp = 'regexp'
S_set = 'set'
S_string = 'string'
S_symbol = 'symbol'

# General strings.
S_MT = ''
S_DT = '.'
S_WILD = '*'
S_UTC = '+00:00'


# The standard undefined value for this language.
UNDEF = None


class Symbol:
    """
    Unique token with a descriptive label. A symbol is only ever equal
    to itself, whatever its label.
    """
    __slots__ = ('description',)

    def __init__(self, description: Optional[str] = UNDEF) -> None:
        self.description = description

    def __repr__(self) -> str:
        return 'Symbol(' + strkey(self.description) + ')'


class ValueKind(Enum):
    PRIMITIVE = 'primitive'
    UNIQUE_TOKEN = 'token'
    UNIQUE_COLLECTION = 'set'
    KEYED_COLLECTION = 'mapping'
    SEQUENCE = 'sequence'
    KEYED = 'map'
    INSTANCE = 'instance'
    OPAQUE = 'opaque'


# Immutable scalars. These are never copied.
PRIMITIVE_TYPES = (
    type(None), bool, numbers.Number, str, bytes,
    datetime, date, time, timedelta, Enum, Symbol,
)

# String literals recognised by coercevalues.
LITERALS = MappingProxyType({
    'true': True,
    'false': False,
    'null': None,
    'undefined': UNDEF,
})

SPECIAL_NUMBERS = MappingProxyType({
    'NaN': math.nan,
    'Infinity': math.inf,
    '-Infinity': -math.inf,
})


class CloneRefs:
    """
    Identity map from original values to their clones, used by deepclone
    to resolve cycles and shared references. Originals are held by the
    map so that their ids stay unique while it is alive.
    """
    def __init__(self) -> None:
        self._refs: Dict[int, Tuple[Any, Any]] = {}

    def __contains__(self, val: Any) -> bool:
        return id(val) in self._refs

    def __len__(self) -> int:
        return len(self._refs)

    def get(self, val: Any, alt: Any = UNDEF) -> Any:
        entry = self._refs.get(id(val))
        return alt if entry is None else entry[1]

    def set(self, val: Any, out: Any) -> Any:
        self._refs[id(val)] = (val, out)
        return out


class CoerceOptions:
    """
    Options for coercevalues. Build directly from keyword arguments, or
    from a dict of options with CoerceOptions.resolve.
    """
    FIELDS = (
        'deep',
        'transformer',
        'parse_numbers',
        'parse_dates',
        'keys',
        'empty_string_to_null',
        'parse_special_numbers',
    )

    def __init__(
        self,
        deep: bool = False,                  # Coerce nested nodes too.
        transformer: Any = UNDEF,            # Custom hook (val, key) -> val, applied first.
        parse_numbers: bool = False,         # Numeric strings to int or float.
        parse_dates: bool = False,           # ISO date strings to datetime.
        keys: Any = UNDEF,                   # Only these keys are coerced.
        empty_string_to_null: bool = False,  # Empty strings to None.
        parse_special_numbers: bool = False  # NaN and Infinity strings to float.
    ) -> None:
        errs = _optionerrs(transformer, keys)
        if 0 < len(errs):
            raise ValueError('Invalid options: ' + ' | '.join(errs))

        self.deep = bool(deep)
        self.transformer = transformer
        self.parse_numbers = bool(parse_numbers)
        self.parse_dates = bool(parse_dates)
        self.keys = UNDEF if UNDEF is keys else frozenset(keys)
        self.empty_string_to_null = bool(empty_string_to_null)
        self.parse_special_numbers = bool(parse_special_numbers)

        self.literals = LITERALS
        if self.parse_special_numbers:
            self.literals = MappingProxyType({**LITERALS, **SPECIAL_NUMBERS})

    @classmethod
    def resolve(cls, options: Any = UNDEF) -> 'CoerceOptions':
        "Accept an existing CoerceOptions, a dict of options, or nothing."
        if isinstance(options, CoerceOptions):
            return options

        if UNDEF is options:
            return cls()

        if not isinstance(options, Mapping):
            raise ValueError('Invalid options: expected map, but found ' +
                             typify(options) + ': ' + stringify(options) + '.')

        known = {k: v for k, v in options.items() if k in cls.FIELDS}
        errs = ['unknown option ' + stringify(k) for k in options if k not in cls.FIELDS]
        errs += _optionerrs(known.get('transformer'), known.get('keys'))

        if 0 < len(errs):
            raise ValueError('Invalid options: ' + ' | '.join(errs))

        return cls(**known)

    def __repr__(self) -> str:
        return 'CoerceOptions(' + ', '.join(
            f'{name}={getattr(self, name)!r}' for name in self.FIELDS) + ')'


def isprimitive(val: Any = UNDEF) -> bool:
    "Value is an immutable scalar: None, boolean, number, string, date, enum or symbol."
    return isinstance(val, PRIMITIVE_TYPES)


def issymbol(val: Any = UNDEF) -> bool:
    "Value is a Symbol token."
    return isinstance(val, Symbol)


def islist(val: Any = UNDEF) -> bool:
    "Value is a defined list (array) with integer keys (indexes). Tuples included."
    return isinstance(val, (list, tuple))


def ismap(val: Any = UNDEF) -> bool:
    "Value is a defined map (hash) with string (or symbol) keys."
    return isinstance(val, dict) and all(isinstance(k, (str, Symbol)) for k in val)


def ismapping(val: Any = UNDEF) -> bool:
    "Value is a keyed collection that is not a plain map: keys may be any hashable value."
    return isinstance(val, Mapping) and not ismap(val)


def isset(val: Any = UNDEF) -> bool:
    "Value is a set of unique elements."
    return isinstance(val, (set, frozenset))


def isnode(val: Any = UNDEF) -> bool:
    "Value is a node - defined, and a map (hash) or list (array)."
    return isinstance(val, (Mapping, list, tuple))


def isfunc(val: Any = UNDEF) -> bool:
    "Value is a function."
    return callable(val)


def isstring(val: Any = UNDEF) -> bool:
    return isinstance(val, str)


def isnumber(val: Any = UNDEF) -> bool:
    "Value is a number, excluding booleans and NaN."
    return (isinstance(val, numbers.Number) and
            not isinstance(val, bool) and
            val == val)


def isint(val: Any = UNDEF) -> bool:
    return isinstance(val, int) and not isinstance(val, bool)


def isfloat(val: Any = UNDEF) -> bool:
    return isinstance(val, float) and not math.isnan(val)


def isdate(val: Any = UNDEF) -> bool:
    return isinstance(val, date)


def ispromise(val: Any = UNDEF) -> bool:
    "Value can be awaited."
    return inspect.isawaitable(val)


def isempty(val: Any = UNDEF) -> bool:
    "Check for an 'empty' value - None, False, zero, empty string or empty container."
    if UNDEF is val:
        return True

    if isinstance(val, numbers.Number):
        return 0 == val

    if isinstance(val, (str, bytes, Mapping, list, tuple, set, frozenset)):
        return 0 == len(val)

    return False


def typify(value: Any = UNDEF) -> str:
    "Name the type of a value."
    if value is UNDEF:
        return S_null
    if isinstance(value, bool):
        return S_boolean
    if isinstance(value, numbers.Number):
        return S_number
    if isinstance(value, str):
        return S_string
    if isinstance(value, bytes):
        return S_bytes
    if isinstance(value, Symbol):
        return S_symbol
    if isinstance(value, date):
        return S_date
    if isinstance(value, re.Pattern):
        return S_regexp
    if isinstance(value, BaseException):
        return S_error
    if inspect.isawaitable(value):
        return S_promise
    if callable(value):
        return S_function
    if islist(value):
        return S_array
    if isset(value):
        return S_set
    if ismapping(value):
        return S_map
    return S_object


def istype(name: str, val: Any = UNDEF) -> bool:
    "Value has the named type (see typify)."
    return typify(val) == name


def kindof(val: Any = UNDEF) -> ValueKind:
    "Classify a value for structural traversal."
    if isinstance(val, Symbol):
        return ValueKind.UNIQUE_TOKEN
    if isprimitive(val):
        return ValueKind.PRIMITIVE
    if isset(val):
        return ValueKind.UNIQUE_COLLECTION
    if islist(val):
        return ValueKind.SEQUENCE
    if ismap(val):
        return ValueKind.KEYED
    if isinstance(val, Mapping):
        return ValueKind.KEYED_COLLECTION
    if callable(val) or inspect.ismodule(val) or not hasattr(val, '__dict__'):
        return ValueKind.OPAQUE
    return ValueKind.INSTANCE


def isequal(
        # These arguments are the public interface.
        a: Any,
        b: Any,

        # These arguments are used for recursive state.
        seen=UNDEF
) -> bool:
    """
    Deep structural equality. Values with different type names (see
    typify) are never equal. Regular expressions compare by pattern and
    flags; symbols and opaque objects by identity or their own __eq__.
    A pair of nodes already under comparison counts as equal, so
    cyclic structures terminate.
    """
    if a is b:
        return True

    if typify(a) != typify(b):
        return False

    if isinstance(a, re.Pattern):
        return a.pattern == b.pattern and a.flags == b.flags

    if isinstance(a, Mapping) or islist(a):
        seen = set() if UNDEF is seen else seen
        pair = (id(a), id(b))
        if pair in seen:
            return True
        seen.add(pair)

    if isinstance(a, Mapping):
        if not isinstance(b, Mapping) or len(a) != len(b) or any(k not in b for k in a):
            return False
        return all(isequal(a[k], b[k], seen) for k in a)

    if islist(a):
        return len(a) == len(b) and all(isequal(x, y, seen) for x, y in zip(a, b))

    return a == b


def strkey(key: Any = UNDEF) -> str:
    if UNDEF is key:
        return S_MT

    if isinstance(key, str):
        return key

    if isinstance(key, bool):
        return S_MT

    if isinstance(key, int):
        return str(key)

    if isinstance(key, float):
        if not math.isfinite(key):
            return str(key)
        return str(int(key))

    if isinstance(key, Symbol):
        return strkey(key.description)

    return S_MT


def getprop(val: Any = UNDEF, key: Any = UNDEF, alt: Any = UNDEF) -> Any:
    """
    Safely get a property of a node. Undefined arguments return undefined.
    If the key is not found, return the alternative value.
    """
    if UNDEF is val or UNDEF is key:
        return alt

    out = alt

    if isinstance(val, Mapping):
        out = val.get(key, alt)

    elif islist(val):
        try:
            key = int(key)
        except (TypeError, ValueError):
            return alt

        if 0 <= key < len(val):
            out = val[key]

    return alt if UNDEF is out else out


def stringify(val: Any, maxlen: int = UNDEF) -> str:
    "Safely stringify a value for printing (NOT JSON!)."
    valstr = S_MT

    if UNDEF is val:
        return valstr

    if isinstance(val, str):
        valstr = val
    else:
        try:
            valstr = json.dumps(val, sort_keys=True, separators=(',', ':'))
            valstr = valstr.replace('"', '')
        except (TypeError, ValueError):
            valstr = str(val)

    if UNDEF is not maxlen and 3 < maxlen < len(valstr):
        valstr = valstr[:maxlen - 3] + '...'

    return valstr


def deepclone(val: Any = UNDEF, refs: Optional[CloneRefs] = UNDEF) -> Any:
    """
    Deep clone a value. Lists, tuples, maps, mappings and sets are
    copied at every level and keep their type (an OrderedDict stays an
    OrderedDict, a defaultdict keeps its factory, a MappingProxyType
    stays read-only). Class instances are rebuilt with cloned
    attributes. Within one call, cycles and shared references resolve
    to the same clone. Symbols are re-created with the same label.
    NOTE: functions, classes, modules and objects without a __dict__
    are shared, *not* cloned.
    """
    if UNDEF is refs:
        refs = CloneRefs()
    return _clone(val, refs)


def shallowclone(val: Any = UNDEF) -> Any:
    "Copy the top level of a value. Children are shared, *not* cloned."
    if isprimitive(val) or isinstance(val, (tuple, frozenset)):
        return val

    if inspect.isfunction(val) or inspect.ismethod(val) or inspect.isbuiltin(val):
        @functools.wraps(val)
        def fclone(*args, **kwargs):
            return val(*args, **kwargs)
        return fclone

    return copy.copy(val)


def coercevalues(data: Any = UNDEF, options: Any = UNDEF) -> Any:
    """
    Coerce strings to the values they spell out. A new map is returned
    for map input; lists are only coerced (into new lists) in deep mode.
    For each string, the first rule that applies wins:
    1. options.transformer(val, key), if it returns a changed value.
    2. '' to None, if options.empty_string_to_null.
    3. Literals: 'true', 'false', 'null', 'undefined', and with
       options.parse_special_numbers 'NaN', 'Infinity', '-Infinity'.
    4. ISO dates to datetime, if options.parse_dates.
    5. Decimal numbers to int or float, if options.parse_numbers.
    Strings that match no rule are left unchanged. With options.keys
    set, only those keys are coerced, at every level.
    """
    opts = CoerceOptions.resolve(options)
    return _coerce(data, UNDEF, opts)


def createtransformer(rules: Dict[str, Callable[[Any], Any]]) -> Callable[[Any, Any], Any]:
    """
    Create a coercevalues transformer from a map of key patterns to
    value functions. A pattern applies when it occurs within the key,
    and the first applicable rule to change the value wins. Otherwise
    the wildcard rule '*', if any, is applied to the value.
    """
    rules = dict(rules)
    wild = rules.pop(S_WILD, UNDEF)

    def transformer(val, key):
        skey = strkey(key)
        for pattern, rule in rules.items():
            if pattern in skey:
                out = rule(val)
                if _changed(out, val):
                    return out

        return val if UNDEF is wild else wild(val)

    return transformer


def tryparse(text: Any, fallback: Any = UNDEF, options: Any = UNDEF) -> Any:
    """
    Parse JSON text, returning the fallback value if the text is not
    valid JSON or the result fails the optional validator.
    Options: validator(val) -> bool, onerror(err, text).
    """
    validator = getprop(options, 'validator')
    onerror = getprop(options, 'onerror')

    try:
        out = json.loads(text)
    except (TypeError, ValueError, RecursionError) as err:
        return _fallback('tryparse', err, text, onerror, fallback)

    if UNDEF is not validator and not validator(out):
        err = ValueError('Parsed result failed validation: ' + stringify(out, 44))
        return _fallback('tryparse', err, text, onerror, fallback)

    return out


def trystringify(val: Any = UNDEF, fallback: str = '{}', options: Any = UNDEF) -> str:
    """
    Convert a value to JSON, returning the fallback string if it cannot
    be converted.
    Options: replacer(val) (see json.dumps default), indent, onerror(err, val).
    """
    onerror = getprop(options, 'onerror')

    try:
        return json.dumps(
            val,
            default=getprop(options, 'replacer'),
            indent=getprop(options, 'indent'),
        )
    except (TypeError, ValueError, RecursionError) as err:
        return _fallback('trystringify', err, val, onerror, fallback)


# Internal utilities
# ==================

def _clone(val, refs):
    if val in refs:
        log.debug('deepclone: resolved reference to %s', typify(val))
        return refs.get(val)

    kind = kindof(val)

    if ValueKind.UNIQUE_TOKEN == kind:
        return refs.set(val, Symbol(val.description))

    if ValueKind.PRIMITIVE == kind or ValueKind.OPAQUE == kind:
        return val

    # Mutable containers are registered before their children are
    # cloned, so that cycles resolve to the new container.

    if ValueKind.UNIQUE_COLLECTION == kind:
        if isinstance(val, frozenset):
            return _settle(val, frozenset(_clone(item, refs) for item in val), refs)
        out = refs.set(val, _empty(val, set(), MutableSet))
        for item in val:
            out.add(_clone(item, refs))
        return out

    if ValueKind.KEYED_COLLECTION == kind:
        # A read-only proxy is registered first and filled through its
        # backing dict.
        if isinstance(val, MappingProxyType):
            fill = {}
            out = refs.set(val, MappingProxyType(fill))
        else:
            out = fill = refs.set(val, _empty(val, {}, MutableMapping))
        for key, child in val.items():
            ckey = key if isprimitive(key) else _clone(key, refs)
            fill[ckey] = _clone(child, refs)
        return out

    if ValueKind.SEQUENCE == kind:
        if isinstance(val, tuple):
            return _settle(val, _tuple(val, [_clone(item, refs) for item in val]), refs)
        out = refs.set(val, _empty(val, [], MutableSequence))
        for item in val:
            out.append(_clone(item, refs))
        return out

    if ValueKind.INSTANCE == kind:
        # Attributes are written to the instance dict, bypassing any
        # __setattr__ (frozen dataclasses included).
        out = refs.set(val, type(val).__new__(type(val)))
        for name, attr in vars(val).items():
            out.__dict__[name] = _clone(attr, refs)
        return out

    # Plain map: string keys first, then symbol keys. Keys are not cloned.
    out = refs.set(val, _empty(val, {}, MutableMapping))
    for key in [k for k in val if isinstance(k, str)] + [k for k in val if isinstance(k, Symbol)]:
        out[key] = _clone(val[key], refs)
    return out


# An empty container of the same type as val, or plain when that type
# cannot be built without arguments. A defaultdict keeps its factory.
def _empty(val, plain, abc):
    if type(val) is type(plain):
        return plain

    if isinstance(val, defaultdict):
        out = copy.copy(val)
        out.clear()
        return out

    try:
        out = type(val)()
    except TypeError:
        return plain

    return out if isinstance(out, abc) else plain


# Immutable containers can only be registered once built. A cycle
# through a mutable child may already have produced a clone.
def _settle(val, out, refs):
    if val in refs:
        return refs.get(val)
    return refs.set(val, out)


def _tuple(like, items):
    if hasattr(type(like), '_fields'):
        return type(like)(*items)
    return tuple(items)


def _coerce(data, key, opts):
    if UNDEF is data:
        return data

    if islist(data):
        if not opts.deep:
            return data
        out = [_coerce(item, index, opts) for index, item in enumerate(data)]
        return _tuple(data, out) if isinstance(data, tuple) else out

    if isinstance(data, Mapping):
        out = {}
        for ckey, child in data.items():
            if UNDEF is not opts.keys and ckey not in opts.keys:
                out[ckey] = child
            else:
                out[ckey] = _coerceval(child, ckey, opts)
        return out

    return _coerceval(data, key, opts)


def _coerceval(val, key, opts):
    if UNDEF is not opts.transformer:
        out = opts.transformer(val, key)
        if _changed(out, val):
            log.debug('coercevalues: transformer replaced value of key %r', key)
            return _coerce(out, key, opts) if opts.deep and isnode(out) else out

    if isinstance(val, str):
        return _coercestr(val, opts)

    if opts.deep and isnode(val):
        return _coerce(val, key, opts)

    return val


def _coercestr(val, opts):
    if opts.empty_string_to_null and S_MT == val:
        return None

    if val in opts.literals:
        return opts.literals[val]

    if opts.parse_dates and R_ISO_DATE.fullmatch(val):
        out = _parsedate(val)
        if UNDEF is not out:
            return out
        log.debug('coercevalues: invalid date: %s', val)

    if opts.parse_numbers and R_NUMERIC.fullmatch(val):
        out = _parsenumber(val)
        if UNDEF is not out:
            return out
        log.debug('coercevalues: invalid number: %s', stringify(val, 44))

    return val


# Date-only text is UTC midnight, and a trailing Z is UTC. Other
# date-times are naive.
def _parsedate(val):
    text = val[:-1] + S_UTC if val.endswith('Z') else val
    try:
        out = datetime.fromisoformat(text)
    except ValueError:
        return UNDEF

    if 'T' not in val:
        out = out.replace(tzinfo=timezone.utc)

    return out


def _parsenumber(val):
    try:
        out = float(val) if S_DT in val else int(val)
    except ValueError:
        return UNDEF

    return UNDEF if out != out else out


# A transformer result is a change unless it is the same value, with
# the same type.
def _changed(out, val):
    if out is val:
        return False
    return type(out) is not type(val) or not isequal(out, val)


def _optionerrs(transformer, keys):
    errs = []
    if UNDEF is not transformer and not isfunc(transformer):
        errs.append('transformer must be a function, but found ' +
                    typify(transformer) + ': ' + stringify(transformer))
    if UNDEF is not keys and not isinstance(keys, (list, tuple, set, frozenset)):
        errs.append('keys must be a list of key names, but found ' +
                    typify(keys) + ': ' + stringify(keys))
    return errs


def _fallback(name, err, src, onerror, fallback):
    log.debug('%s: %s', name, err)
    if UNDEF is not onerror:
        onerror(err, src)
    return fallback


# Create a DataUtility class with all utility functions as attributes
class DataUtility:
    def __init__(self):
        self.coercevalues = coercevalues
        self.createtransformer = createtransformer
        self.deepclone = deepclone
        self.getprop = getprop
        self.isdate = isdate
        self.isempty = isempty
        self.isequal = isequal
        self.isfloat = isfloat
        self.isfunc = isfunc
        self.isint = isint
        self.islist = islist
        self.ismap = ismap
        self.ismapping = ismapping
        self.isnode = isnode
        self.isnumber = isnumber
        self.isprimitive = isprimitive
        self.ispromise = ispromise
        self.isset = isset
        self.isstring = isstring
        self.issymbol = issymbol
        self.istype = istype
        self.kindof = kindof
        self.shallowclone = shallowclone
        self.stringify = stringify
        self.strkey = strkey
        self.tryparse = tryparse
        self.trystringify = trystringify
        self.typify = typify


__all__ = [
    'CloneRefs',
    'CoerceOptions',
    'DataUtility',
    'LITERALS',
    'SPECIAL_NUMBERS',
    'Symbol',
    'UNDEF',
    'ValueKind',
    'coercevalues',
    'createtransformer',
    'deepclone',
    'getprop',
    'isdate',
    'isempty',
    'isequal',
    'isfloat',
    'isfunc',
    'isint',
    'islist',
    'ismap',
    'ismapping',
    'isnode',
    'isnumber',
    'isprimitive',
    'ispromise',
    'isset',
    'isstring',
    'issymbol',
    'istype',
    'kindof',
    'shallowclone',
    'stringify',
    'strkey',
    'tryparse',
    'trystringify',
    'typify',
]
