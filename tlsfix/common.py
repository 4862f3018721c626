'''
Path, file, YAML and logging helpers shared by the tlsfix modules and tools.
'''
import os
import logging

import yaml

import tlsfix.exc as t_exc
import tlsfix.lib.const as t_const
import tlsfix.lib.structlog as t_structlog

try:
    from yaml import CSafeLoader as Loader
except ImportError:  # pragma: no cover
    from yaml import SafeLoader as Loader

logger = logging.getLogger(__name__)

def genpath(*paths):
    '''
    Join path elements into an absolute path, expanding ``~`` and environment variables.
    '''
    path = os.path.join(*paths)
    path = os.path.expandvars(os.path.expanduser(path))
    return os.path.abspath(path)

def reqpath(*paths):
    '''
    Like genpath(), but the result must be an existing file.

    Raises:
        NoSuchFile: If no file exists at the path.
    '''
    path = genpath(*paths)
    if not os.path.isfile(path):
        raise t_exc.NoSuchFile(mesg=f'No such path {path}', path=path)
    return path

def gendir(*paths, mode=0o700):
    '''
    Like genpath(), creating the directory (and its parents) if it does not exist.
    '''
    path = genpath(*paths)
    os.makedirs(path, mode=mode, exist_ok=True)
    return path

def putfile(path, byts, mode=0o644, overwrite=False):
    '''
    Write bytes to a file, creating its directory if needed.

    Args:
        path (str): The file path.
        byts (bytes): The file contents.
        mode (int): Permission bits for the file, applied to replaced files as well.
        overwrite (bool): Replace an existing file instead of raising DupFileName.

    Raises:
        DupFileName: If the file exists and overwrite is False.

    Returns:
        str: The absolute path which was written.
    '''
    path = genpath(path)
    gendir(os.path.dirname(path))

    flags = os.O_WRONLY | os.O_CREAT | os.O_TRUNC
    if not overwrite:
        flags |= os.O_EXCL

    try:
        fd = os.open(path, flags, mode)
    except FileExistsError:
        raise t_exc.DupFileName(mesg=f'Duplicate file {path}', path=path) from None

    # the open() mode is masked by the umask and ignored for existing files
    os.fchmod(fd, mode)
    with open(fd, 'wb') as fobj:
        fobj.write(byts)

    return path

def yamlloads(data):
    return yaml.load(data, Loader)

def yamlload(*paths):
    '''
    Load a YAML (or JSON) file.

    Returns:
        The decoded document, or None if the file does not exist.
    '''
    path = genpath(*paths)
    if not os.path.isfile(path):
        return None

    with open(path, 'rb') as fd:
        return yamlloads(fd)

def envbool(name, defval='false'):
    '''
    Resolve an environment variable to a boolean. "0" and "false" (any case) are False.
    '''
    return os.getenv(name, defval).lower() not in ('0', 'false')

def getLogConf(level=None, structlog=False, datefmt=None):
    '''
    Resolve the logging configuration, letting environment variables override the arguments.

    Args:
        level (str): Log level name or number. Overridden by TLSFIX_LOG_LEVEL.
        structlog (bool): JSON lines output. Overridden by TLSFIX_LOG_STRUCT.
        datefmt (str): strftime format for timestamps. Overridden by TLSFIX_LOG_DATEFORMAT.

    Returns:
        dict: The ``level``, ``structlog`` and ``datefmt`` values.
    '''
    return {
        'level': os.getenv('TLSFIX_LOG_LEVEL', level),
        'structlog': envbool('TLSFIX_LOG_STRUCT', 'true' if structlog else 'false'),
        'datefmt': os.getenv('TLSFIX_LOG_DATEFORMAT', datefmt),
    }

def normLogLevel(valu):
    '''
    Norm a log level name or number to a logging level integer.

    Raises:
        BadArg: If the value is not a known log level.
    '''
    if isinstance(valu, str):
        text = valu.strip().upper()
        if text.isdigit():
            valu = int(text)
        else:
            ret = t_const.LOG_LEVEL_CHOICES.get(text)
            if ret is None:
                raise t_exc.BadArg(mesg=f'Invalid log level provided: {valu}', valu=valu)
            return ret

    if isinstance(valu, int) and not isinstance(valu, bool):
        if valu not in t_const.LOG_LEVEL_INVERSE_CHOICES:
            raise t_exc.BadArg(mesg=f'Invalid log level provided: {valu}', valu=valu)
        return valu

    raise t_exc.BadArg(mesg=f'Unknown log level type: {type(valu)} {valu}', valu=valu)

def _swapHandler(lgr, handler, level):
    for oldh in [h for h in lgr.handlers if getattr(h, '_tlsfix_handler', False)]:
        lgr.removeHandler(oldh)
    lgr.addHandler(handler)
    lgr.setLevel(level)

def setlogging(mlogger, defval=None, structlog=False, log_setup=True, datefmt=None):
    '''
    Configure logging output for the tlsfix loggers.

    One stream handler is installed on the ``tlsfix`` logger, and on mlogger when it lives
    outside the package (a tool run as ``__main__``). Calling this again replaces that
    handler. The root logger is left alone.

    Args:
        mlogger (logging.Logger): The calling module's logger.
        defval (str): Default log level. Nothing is configured without a level.
        structlog (bool): Enable structured (JSON lines) output.
        log_setup (bool): Log the chosen level through mlogger.
        datefmt (str): Optional strftime format string.

    Returns:
        dict: The resolved logging configuration.
    '''
    conf = getLogConf(defval, structlog, datefmt)
    if not conf.get('level'):
        return conf

    level = normLogLevel(conf.get('level'))
    conf['level'] = level

    handler = logging.StreamHandler()
    handler._tlsfix_handler = True
    if conf.get('structlog'):
        handler.setFormatter(t_structlog.JsonFormatter(datefmt=conf.get('datefmt')))
    else:
        handler.setFormatter(logging.Formatter(t_const.LOG_FORMAT, datefmt=conf.get('datefmt')))

    _swapHandler(logging.getLogger('tlsfix'), handler, level)
    if not mlogger.name.startswith('tlsfix.'):
        _swapHandler(mlogger, handler, level)

    if log_setup:
        mlogger.info('log level set to %s', t_const.LOG_LEVEL_INVERSE_CHOICES.get(level))

    return conf
