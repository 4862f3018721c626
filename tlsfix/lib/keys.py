'''
Private key generation from key type selectors such as "RSA-2048" or "P-256".
'''
import logging

import regex

import cryptography.hazmat.primitives.asymmetric.ec as c_ec
import cryptography.hazmat.primitives.asymmetric.rsa as c_rsa
import cryptography.hazmat.primitives.asymmetric.ed25519 as c_ed25519
import cryptography.hazmat.primitives.serialization as c_serialization

import tlsfix.exc as t_exc
import tlsfix.lib.const as t_const

logger = logging.getLogger(__name__)

sizere = regex.compile(r'^[0-9]+$')

curves = {
    'p224': c_ec.SECP224R1,
    'p-224': c_ec.SECP224R1,
    'secp224r1': c_ec.SECP224R1,
    'p256': c_ec.SECP256R1,
    'p-256': c_ec.SECP256R1,
    'prime256v1': c_ec.SECP256R1,
    'p384': c_ec.SECP384R1,
    'p-384': c_ec.SECP384R1,
    'secp384r1': c_ec.SECP384R1,
    'p521': c_ec.SECP521R1,
    'p-521': c_ec.SECP521R1,
    'secp521r1': c_ec.SECP521R1,
}

edwards = ('ed25519', 'curve25519')

# older configurations name P-521 "p512"
deprecated = {
    'p512': 'p521',
}

def genPrivKey(keytype=None):
    '''
    Generate a private key.

    Args:
        keytype (str): A case-insensitive key type selector. Defaults to RSA-2048.

    Examples:
        Generate a P-256 key::

            prvkey = genPrivKey('p256')

    Returns:
        A cryptography private key object.
    '''
    norm = (keytype or '').strip().lower()
    if not norm:
        norm = t_const.DEFAULT_KEY_TYPE.lower()

    if norm.startswith('rsa'):
        return _genRsaKey(norm)

    if norm in deprecated:
        logger.warning('Key type %s is deprecated, use %s', norm, deprecated[norm],
                       extra={'tlsfix': {'keytype': norm}})
        norm = deprecated[norm]

    curve = curves.get(norm)
    if curve is not None:
        return c_ec.generate_private_key(curve())

    if norm in edwards:
        return c_ed25519.Ed25519PrivateKey.generate()

    raise t_exc.UnsupportedKeyType(mesg=f'Unsupported key type: {keytype}', valu=keytype)

def _genRsaKey(norm):

    # "rsa2048", "rsa-2048" and "RSA-2048" all select a 2048 bit key
    text = norm.replace('-', '')[3:]
    if sizere.match(text) is None:
        raise t_exc.InvalidKeySize(mesg=f'Invalid RSA key size: {norm}', valu=norm)

    bits = int(text)
    if not t_const.RSA_MIN_BITS <= bits <= t_const.RSA_MAX_BITS:
        mesg = f'RSA key size must be between {t_const.RSA_MIN_BITS} and {t_const.RSA_MAX_BITS}, got {bits}'
        raise t_exc.InvalidKeySize(mesg=mesg, valu=bits)

    try:
        return c_rsa.generate_private_key(t_const.RSA_PUBLIC_EXPONENT, bits)
    except ValueError as e:
        raise t_exc.InvalidKeySize(mesg=f'RSA key size {bits} refused: {e}', valu=bits) from None

def getKeyDer(prvkey):
    '''
    Get the unencrypted PKCS#8 DER encoding of a private key.
    '''
    return prvkey.private_bytes(encoding=c_serialization.Encoding.DER,
                                format=c_serialization.PrivateFormat.PKCS8,
                                encryption_algorithm=c_serialization.NoEncryption(),
                                )

def getKeyPem(prvkey):
    return prvkey.private_bytes(encoding=c_serialization.Encoding.PEM,
                                format=c_serialization.PrivateFormat.PKCS8,
                                encryption_algorithm=c_serialization.NoEncryption(),
                                )
