'''
JSON lines log formatting.

Each record becomes one JSON object. Context passed with ``extra={'tlsfix': {...}}`` and the
``errinfo`` of a logged FixErr (the certificate ``name``, ``parent``, ``valu`` ...) are placed at
the top level, so records for one certificate can be selected by a single key.
'''
import logging

import msgspec.json as m_json

import tlsfix.exc as t_exc

# keys owned by the formatter which context values may not replace
reserved = ('message', 'level', 'time', 'logger', 'err')

def trimText(text, n=256, placeholder='...'):
    '''
    Trim text longer than n characters, ending it with the placeholder.
    '''
    if len(text) <= n:
        return text
    return text[:n - len(placeholder)] + placeholder

def _encHook(valu):
    return trimText(repr(valu))

def getErrInfo(exc):
    '''
    Get the loggable fields of an exception.

    Args:
        exc (Exception): The exception.

    Returns:
        dict: ``errname`` plus the FixErr errinfo fields, or ``mesg`` for other exceptions.
    '''
    info = {'errname': exc.__class__.__name__}
    if isinstance(exc, t_exc.FixErr):
        info.update(exc.items())
    else:
        info['mesg'] = str(exc)
    return info

class JsonFormatter(logging.Formatter):

    def format(self, record: logging.LogRecord):

        ret = {
            'message': record.getMessage(),
            'level': record.levelname,
            'time': self.formatTime(record, self.datefmt),
            'logger': {
                'name': record.name,
                'filename': record.filename,
                'func': record.funcName,
            },
        }

        extras = getattr(record, 'tlsfix', None)
        if extras:
            ret.update({k: v for k, v in extras.items() if k not in reserved})

        if record.exc_info and record.exc_info[1] is not None:
            info = getErrInfo(record.exc_info[1])
            ret['err'] = {
                'errname': info.pop('errname'),
                'etb': self.formatException(record.exc_info),
            }
            for key, valu in info.items():
                if key not in reserved:
                    ret.setdefault(key, valu)

        return m_json.encode(ret, enc_hook=_encHook).decode()
