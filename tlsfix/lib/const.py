import logging
import datetime

# Logging related constants
LOG_FORMAT = '%(asctime)s [%(levelname)s] %(message)s ' \
             '[%(filename)s:%(funcName)s:%(threadName)s:%(processName)s]'
LOG_LEVEL_CHOICES = {
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARNING': logging.WARNING,
    'ERROR': logging.ERROR,
    'CRITICAL': logging.CRITICAL,
}
LOG_LEVEL_INVERSE_CHOICES = {v: k for k, v in LOG_LEVEL_CHOICES.items()}

# Certificate defaults
DEFAULT_KEY_TYPE = 'RSA-2048'
DEFAULT_PURPOSE = 'server'

NOT_BEFORE_SKEW = datetime.timedelta(hours=1)
NOT_AFTER_DELTA = datetime.timedelta(days=375)

# hops from a certificate to its self-signed root
MAX_CHAIN_DEPTH = 5

# path length written for CA certs which do not specify one
UNCONSTRAINED_PATH_LEN = 99

# random serial numbers are between 17 and 19 bytes
SERIAL_MIN_BYTES = 17
SERIAL_MAX_BYTES = 19

RSA_MIN_BITS = 4
RSA_MAX_BITS = 16000
RSA_PUBLIC_EXPONENT = 65537
