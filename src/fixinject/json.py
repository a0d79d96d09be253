''' Wrapper module around :mod:`orjson` providing the equivalent of
    :func:`json.loads` and :func:`json.dumps`. As with orjson, :func:`dumps`
    returns bytes.
'''

import orjson


def dumps(thing, indent=False):
    if indent:
        return orjson.dumps(thing, option=orjson.OPT_INDENT_2)
    return orjson.dumps(thing)


loads = orjson.loads


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
