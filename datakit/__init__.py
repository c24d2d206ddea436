# datakit init

import logging

from .datakit import (
    CloneRefs,
    CoerceOptions,
    DataUtility,
    LITERALS,
    SPECIAL_NUMBERS,
    Symbol,
    UNDEF,
    ValueKind,
    coercevalues,
    createtransformer,
    deepclone,
    getprop,
    isdate,
    isempty,
    isequal,
    isfloat,
    isfunc,
    isint,
    islist,
    ismap,
    ismapping,
    isnode,
    isnumber,
    isprimitive,
    ispromise,
    isset,
    isstring,
    issymbol,
    istype,
    kindof,
    shallowclone,
    stringify,
    strkey,
    tryparse,
    trystringify,
    typify,
)


# Records are only emitted if the host application configures logging.
logging.getLogger(__name__).addHandler(logging.NullHandler())


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
