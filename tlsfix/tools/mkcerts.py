import os
import sys
import logging
import argparse

import tlsfix.exc as t_exc
import tlsfix.common as t_common
import tlsfix.lib.const as t_const
import tlsfix.lib.store as t_store
import tlsfix.lib.config as t_config
import tlsfix.lib.output as t_output

logger = logging.getLogger(__name__)

descr = '''
Generate the keys and certificates described in a configuration file.

Each certificate is written as <name>.key and <name>.crt PEM files.
'''

def getArgParser():

    pars = argparse.ArgumentParser(prog='mkcerts', description=descr)
    pars.add_argument('--config', default=os.getenv('TLSFIX_CONFIG', 'certs.conf'),
                      help='YAML or JSON configuration file (default: $TLSFIX_CONFIG or certs.conf)')
    pars.add_argument('--outdir', default='.', help='Directory to write the keys and certificates to')
    pars.add_argument('--chain', default=False, action='store_true',
                      help='Also write <name>.chain.crt with the certificate followed by its ancestors')
    pars.add_argument('--overwrite', default=False, action='store_true', help='Replace existing files')
    pars.add_argument('--verify', default=False, action='store_true',
                      help='Verify every certificate against its chain before writing')
    pars.add_argument('--log-level', default=None, choices=list(t_const.LOG_LEVEL_CHOICES.keys()),
                      type=str.upper, help='Set the log level')
    pars.add_argument('--structured-logging', default=False, action='store_true',
                      help='Use structured (JSON lines) logging')
    return pars

def main(argv, outp=None):

    if outp is None:  # pragma: no cover
        outp = t_output.OutPut()

    pars = getArgParser()

    try:
        opts = pars.parse_args(argv)
    except SystemExit as e:
        return 0 if not e.code else 1

    t_common.setlogging(logger, defval=opts.log_level, structlog=opts.structured_logging)

    try:

        conf = t_config.loadConfFile(opts.config)

        logger.info('Generating keys and certificates...')
        store = t_store.buildStore(conf['certs'])

        if opts.verify:
            for name in store.names():
                store.verify(name)
                outp.printf(f'verified: {name}')

        for path in store.save(opts.outdir, chain=opts.chain, overwrite=opts.overwrite):
            outp.printf(f'saved: {path}')

        return 0

    except t_exc.DupFileName as e:
        outp.printf('file exists: %s' % (e.errinfo.get('path'),))
        return -1

    except t_exc.FixErr as e:
        outp.printf(f'error: {e.errname}: {e.get("mesg")}')
        return 1

def _main():  # pragma: no cover
    return sys.exit(main(sys.argv[1:]))

if __name__ == '__main__':  # pragma: no cover
    _main()
