'''
Declarative X.509 key and certificate chain generation for TLS test fixtures.
'''

import sys
if (sys.version_info.major, sys.version_info.minor) < (3, 11):  # pragma: no cover
    raise Exception('tlsfix is not supported on Python versions < 3.11')

from tlsfix.lib.version import version, verstring
