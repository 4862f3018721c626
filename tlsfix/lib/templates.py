'''
Resolve declarative certificate descriptions into concrete signing templates.
'''
import logging
import secrets
import datetime
import ipaddress

import regex

import cryptography.x509 as c_x509

from cryptography.x509.oid import NameOID, ExtendedKeyUsageOID

import tlsfix.exc as t_exc
import tlsfix.lib.const as t_const
import tlsfix.lib.randname as t_randname

logger = logging.getLogger(__name__)

hexre = regex.compile(r'^[0-9a-fA-F]+$')
oidre = regex.compile(r'^[0-9]+(\.[0-9]+)+$')

# strptime only takes microseconds, extra fractional digits are truncated
fracre = regex.compile(r'(\.[0-9]{6})[0-9]+')

# key usage bits in RFC 5280 KeyUsage BIT STRING order
KU_DIGITAL_SIGNATURE = 1 << 0
KU_CONTENT_COMMITMENT = 1 << 1
KU_KEY_ENCIPHERMENT = 1 << 2
KU_DATA_ENCIPHERMENT = 1 << 3
KU_KEY_AGREEMENT = 1 << 4
KU_CERT_SIGN = 1 << 5
KU_CRL_SIGN = 1 << 6
KU_ENCIPHER_ONLY = 1 << 7
KU_DECIPHER_ONLY = 1 << 8

keyusages = {
    'digitalsignature': KU_DIGITAL_SIGNATURE,
    'contentcommitment': KU_CONTENT_COMMITMENT,
    'keyencipherment': KU_KEY_ENCIPHERMENT,
    'dataencipherment': KU_DATA_ENCIPHERMENT,
    'keyagreement': KU_KEY_AGREEMENT,
    'certsign': KU_CERT_SIGN,
    'crlsign': KU_CRL_SIGN,
    'encipheronly': KU_ENCIPHER_ONLY,
    'decipheronly': KU_DECIPHER_ONLY,
}

# (bit, c_x509.KeyUsage keyword)
keyusageargs = (
    (KU_DIGITAL_SIGNATURE, 'digital_signature'),
    (KU_CONTENT_COMMITMENT, 'content_commitment'),
    (KU_KEY_ENCIPHERMENT, 'key_encipherment'),
    (KU_DATA_ENCIPHERMENT, 'data_encipherment'),
    (KU_KEY_AGREEMENT, 'key_agreement'),
    (KU_CERT_SIGN, 'key_cert_sign'),
    (KU_CRL_SIGN, 'crl_sign'),
    (KU_ENCIPHER_ONLY, 'encipher_only'),
    (KU_DECIPHER_ONLY, 'decipher_only'),
)

extkeyusages = {
    'any': ExtendedKeyUsageOID.ANY_EXTENDED_KEY_USAGE,
    'serverauth': ExtendedKeyUsageOID.SERVER_AUTH,
    'clientauth': ExtendedKeyUsageOID.CLIENT_AUTH,
    'codesigning': ExtendedKeyUsageOID.CODE_SIGNING,
    'emailprotection': ExtendedKeyUsageOID.EMAIL_PROTECTION,
    'ipsecendsystem': c_x509.ObjectIdentifier('1.3.6.1.5.5.7.3.5'),
    'ipsectunnel': c_x509.ObjectIdentifier('1.3.6.1.5.5.7.3.6'),
    'ipsecuser': c_x509.ObjectIdentifier('1.3.6.1.5.5.7.3.7'),
    'timestamping': ExtendedKeyUsageOID.TIME_STAMPING,
    'ocspsigning': ExtendedKeyUsageOID.OCSP_SIGNING,
    'microsoftservergatedcrypto': c_x509.ObjectIdentifier('1.3.6.1.4.1.311.10.3.3'),
    'netscapeservergatedcrypto': c_x509.ObjectIdentifier('2.16.840.1.113730.4.1'),
    'microsoftcommercialcodesigning': c_x509.ObjectIdentifier('1.3.6.1.4.1.311.2.1.22'),
    'microsoftkernelcodesigning': c_x509.ObjectIdentifier('1.3.6.1.4.1.311.61.1.1'),
}

# name -> (key family, hash name, rsa-pss)
sigalgs = {
    'md2withrsa': ('rsa', 'md2', False),
    'md5withrsa': ('rsa', 'md5', False),
    'sha1withrsa': ('rsa', 'sha1', False),
    'sha256withrsa': ('rsa', 'sha256', False),
    'sha384withrsa': ('rsa', 'sha384', False),
    'sha512withrsa': ('rsa', 'sha512', False),
    'dsawithsha1': ('dsa', 'sha1', False),
    'dsawithsha256': ('dsa', 'sha256', False),
    'ecdsawithsha1': ('ec', 'sha1', False),
    'ecdsawithsha256': ('ec', 'sha256', False),
    'ecdsawithsha384': ('ec', 'sha384', False),
    'ecdsawithsha512': ('ec', 'sha512', False),
    'sha256withrsapss': ('rsa', 'sha256', True),
    'sha384withrsapss': ('rsa', 'sha384', True),
    'sha512withrsapss': ('rsa', 'sha512', True),
    'ed25519': ('ed25519', None, False),
}

purposes = {
    'root-ca': {
        'keyusage': KU_CERT_SIGN | KU_CRL_SIGN,
        'extkeyusage': (),
        'bcvalid': True,
        'isca': True,
        'maxpathlen': 1,
        'maxpathlenzero': False,
    },
    'intermediate-ca': {
        'keyusage': KU_CERT_SIGN | KU_CRL_SIGN,
        'extkeyusage': (),
        'bcvalid': True,
        'isca': True,
        'maxpathlen': 0,
        'maxpathlenzero': True,
    },
    'server': {
        'keyusage': KU_DIGITAL_SIGNATURE | KU_KEY_ENCIPHERMENT,
        'extkeyusage': (ExtendedKeyUsageOID.SERVER_AUTH,),
        'bcvalid': False,
        'isca': False,
        'maxpathlen': 0,
        'maxpathlenzero': False,
    },
    'client': {
        'keyusage': KU_DIGITAL_SIGNATURE | KU_KEY_ENCIPHERMENT,
        'extkeyusage': (ExtendedKeyUsageOID.CLIENT_AUTH,),
        'bcvalid': False,
        'isca': False,
        'maxpathlen': 0,
        'maxpathlenzero': False,
    },
}

# subject keys in the order they are written into the name
nameattrs = (
    ('c', NameOID.COUNTRY_NAME),
    ('st', NameOID.STATE_OR_PROVINCE_NAME),
    ('l', NameOID.LOCALITY_NAME),
    ('o', NameOID.ORGANIZATION_NAME),
    ('ou', NameOID.ORGANIZATIONAL_UNIT_NAME),
    ('cn', NameOID.COMMON_NAME),
)

# tried in order, first match wins
timeformats = (
    '%Y-%m-%dT%H:%M:%S%z',
    '%Y-%m-%dT%H:%M:%S.%f%z',
    '%Y-%m-%d %H:%M:%S',
    '%Y-%m-%d %H:%M',
    '%Y-%m-%d',
)

class CertTemplate:
    '''
    The fully resolved parameters used to sign one certificate.

    Notes:
        A CA path length of zero is only written to the certificate when ``maxpathlenzero`` is set;
        otherwise a ``maxpathlen`` of zero means the path length is absent.

        The Subject Key Identifier is filled in by the store once the key pair exists, unless it was
        explicitly overridden. The Authority Key Identifier is only set when explicitly overridden.
    '''
    def __init__(self):
        self.purpose = t_const.DEFAULT_PURPOSE
        self.subject = c_x509.Name([])
        self.issuer = None
        self.notbefore = None
        self.notafter = None
        self.serial = None
        self.keyusage = 0
        self.extkeyusage = []
        self.bcvalid = False
        self.isca = False
        self.maxpathlen = 0
        self.maxpathlenzero = False
        self.ski = None
        self.aki = None
        self.sigalg = None
        self.dnsnames = []
        self.ipaddrs = []
        self.emails = []
        self.uris = []
        self.ocsp = []
        self.crls = []

    def getPathLength(self):
        '''
        Get the path length constraint to write into the certificate.

        Returns:
            int: The path length, or None if the constraint is absent.
        '''
        if not self.isca:
            return None

        if self.maxpathlen > 0 or self.maxpathlenzero:
            return self.maxpathlen

        return None

    def getBasicConstraints(self):
        if not self.bcvalid:
            return None
        return c_x509.BasicConstraints(ca=self.isca, path_length=self.getPathLength())

    def getKeyUsage(self):
        if not self.keyusage:
            return None
        kwargs = {argn: bool(self.keyusage & bit) for (bit, argn) in keyusageargs}
        return c_x509.KeyUsage(**kwargs)

    def getExtKeyUsage(self):
        if not self.extkeyusage:
            return None
        return c_x509.ExtendedKeyUsage(self.extkeyusage)

    def getSubjectAltNames(self):
        names = []
        names.extend(c_x509.DNSName(n) for n in self.dnsnames)
        names.extend(c_x509.RFC822Name(n) for n in self.emails)
        names.extend(c_x509.IPAddress(a) for a in self.ipaddrs)
        names.extend(c_x509.UniformResourceIdentifier(u) for u in self.uris)
        if not names:
            return None
        return c_x509.SubjectAlternativeName(names)

def resolve(desc=None):
    '''
    Resolve a certificate description into a CertTemplate.

    Args:
        desc (dict): A certificate description, as found under ``certs`` in a configuration file.

    Examples:
        Resolve a server certificate for a host name::

            tmpl = resolve({'purpose': 'server', 'hostnames': ['www.example.test']})

    Notes:
        Key usage and extended key usage names are added to the purpose preset, not substituted for it.

    Returns:
        CertTemplate: The resolved template.
    '''
    if desc is None:
        desc = {}

    purpose = desc.get('purpose') or t_const.DEFAULT_PURPOSE
    purpose = purpose.strip().lower()

    preset = purposes.get(purpose)
    if preset is None:
        raise t_exc.InvalidPurpose(mesg=f'Invalid purpose: {purpose}', valu=desc.get('purpose'))

    tmpl = CertTemplate()
    tmpl.purpose = purpose
    tmpl.keyusage = preset['keyusage']
    tmpl.extkeyusage = list(preset['extkeyusage'])
    tmpl.bcvalid = preset['bcvalid']
    tmpl.isca = preset['isca']
    tmpl.maxpathlen = preset['maxpathlen']
    tmpl.maxpathlenzero = preset['maxpathlenzero']

    tmpl.dnsnames = list(desc.get('hostnames') or ())
    tmpl.emails = list(desc.get('emails') or ())
    tmpl.uris = list(desc.get('uris') or ())
    tmpl.ipaddrs = [parseIpAddr(a) for a in desc.get('ips') or ()]
    tmpl.ocsp = list(desc.get('ocspServer') or ())
    tmpl.crls = list(desc.get('crls') or ())

    tmpl.subject = _getSubject(desc)

    if (issuer := desc.get('issuer')) is not None:
        tmpl.issuer = genName(issuer)

    now = datetime.datetime.now(datetime.UTC)

    notbefore = desc.get('notBefore')
    if notbefore:
        tmpl.notbefore = parseTime(notbefore)
    else:
        tmpl.notbefore = now - t_const.NOT_BEFORE_SKEW

    notafter = desc.get('notAfter')
    if notafter:
        tmpl.notafter = parseTime(notafter)
    else:
        tmpl.notafter = now + t_const.NOT_AFTER_DELTA

    maxpathlen = desc.get('maxPathLen')
    if desc.get('ca') or maxpathlen is not None:
        tmpl.bcvalid = True
        tmpl.isca = True
        tmpl.maxpathlen = t_const.UNCONSTRAINED_PATH_LEN
        tmpl.maxpathlenzero = False

        if maxpathlen is not None:
            if maxpathlen < 0:
                raise t_exc.BadConfValu(mesg=f'maxPathLen must not be negative: {maxpathlen}', name='maxPathLen')
            tmpl.maxpathlen = maxpathlen
            tmpl.maxpathlenzero = maxpathlen == 0

    if (signame := desc.get('signatureAlg')):
        tmpl.sigalg = parseSigAlg(signame)

    if (kutext := desc.get('keyUsage')) is not None:
        for name in kutext.split(','):
            tmpl.keyusage |= parseKeyUsage(name)

        if tmpl.keyusage & (KU_ENCIPHER_ONLY | KU_DECIPHER_ONLY) and not tmpl.keyusage & KU_KEY_AGREEMENT:
            mesg = 'encipherOnly and decipherOnly require keyAgreement'
            raise t_exc.InvalidKeyUsage(mesg=mesg, valu=kutext)

    if (ekutext := desc.get('extendedKeyUsage')) is not None:
        for name in ekutext.split(','):
            oid = parseExtKeyUsage(name)
            if oid not in tmpl.extkeyusage:
                tmpl.extkeyusage.append(oid)

    serial = desc.get('serial')
    if serial is not None:
        tmpl.serial = parseSerial(serial)
    else:
        tmpl.serial = genSerial()

    if (ski := desc.get('ski')) is not None:
        tmpl.ski = parseKeyId(ski)

    if (aki := desc.get('aki')) is not None:
        tmpl.aki = parseKeyId(aki)

    return tmpl

def _getSubject(desc):

    subj = desc.get('subject')
    if subj is not None:
        return genName(subj)

    hostnames = desc.get('hostnames')
    if hostnames:
        return genName({'cn': hostnames[0]})

    emails = desc.get('emails')
    if emails:
        return genName({'cn': emails[0]})

    return genName(t_randname.pkixName())

def genName(info):
    '''
    Construct a x509 Name from a subject dictionary.

    Args:
        info (dict): A dictionary with optional c, st, l, o, ou, cn and extraNames keys.

    Returns:
        c_x509.Name: The name.
    '''
    attrs = []
    for key, oid in nameattrs:

        valu = info.get(key)
        if not valu:
            continue

        if key == 'c' and len(valu) != 2:
            raise t_exc.InvalidSubject(mesg=f'Country must be a 2 character code, got {valu!r}', valu=valu)

        attrs.append(_genNameAttr(oid, valu))

    extra = info.get('extraNames') or {}
    for oidtext, valu in sorted(extra.items()):
        attrs.append(_genNameAttr(parseOid(oidtext), valu))

    return c_x509.Name(attrs)

def _genNameAttr(oid, valu):
    try:
        return c_x509.NameAttribute(oid, valu)
    except (ValueError, TypeError) as e:
        raise t_exc.InvalidSubject(mesg=f'Invalid subject value {valu!r}: {e}', valu=valu) from None

def parseOid(text):
    text = text.strip()
    if not oidre.match(text):
        raise t_exc.InvalidSubject(mesg=f'Invalid OID: {text}', valu=text)

    try:
        return c_x509.ObjectIdentifier(text)
    except ValueError as e:
        raise t_exc.InvalidSubject(mesg=f'Invalid OID: {text} ({e})', valu=text) from None

def parseTime(text):
    '''
    Parse a validity time string.

    Args:
        text (str): An RFC 3339 timestamp, or a "YYYY-MM-DD[ HH:MM[:SS]]" string which is taken as UTC.

    Returns:
        datetime.datetime: A timezone aware datetime.
    '''
    if isinstance(text, str):
        valu = fracre.sub(r'\1', text.strip(), count=1)
        for fmt in timeformats:
            try:
                dt = datetime.datetime.strptime(valu, fmt)
            except ValueError:
                continue

            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=datetime.UTC)
            return dt

    raise t_exc.InvalidTimeFormat(mesg=f'Invalid time format: {text}', valu=text)

def parseKeyUsage(name):
    bit = keyusages.get(name.strip().lower())
    if bit is None:
        raise t_exc.InvalidKeyUsage(mesg=f'Invalid key usage: {name}', valu=name)
    return bit

def parseExtKeyUsage(name):
    oid = extkeyusages.get(name.strip().lower())
    if oid is None:
        raise t_exc.InvalidExtKeyUsage(mesg=f'Invalid extended key usage: {name}', valu=name)
    return oid

def parseSigAlg(name):
    norm = name.strip().lower()
    if norm not in sigalgs:
        raise t_exc.InvalidSignatureAlgorithm(mesg=f'Invalid signature algorithm: {name}', valu=name)
    return norm

def parseIpAddr(text):
    try:
        return ipaddress.ip_address(text.strip())
    except (ValueError, AttributeError):
        raise t_exc.InvalidIPAddress(mesg=f'Invalid IP address: {text}', valu=text) from None

def _cleanHex(text):
    if not isinstance(text, str):
        return None

    text = text.strip().replace(':', '').replace(' ', '')
    if not hexre.match(text):
        return None

    return text

def parseSerial(text):
    '''
    Parse a hex serial number. Colons and spaces are ignored.

    Returns:
        int: The serial number.
    '''
    hexs = _cleanHex(text)
    if hexs is None:
        raise t_exc.InvalidSerialNumber(mesg=f'Invalid serial number: {text}', valu=text)

    valu = int(hexs, 16)
    if valu == 0 or valu.bit_length() >= 160:
        mesg = f'Serial number must be positive and less than 160 bits: {text}'
        raise t_exc.InvalidSerialNumber(mesg=mesg, valu=text)

    return valu

def parseKeyId(text):
    '''
    Parse a hex key identifier. Colons and spaces are ignored.

    Returns:
        bytes: The key identifier.
    '''
    hexs = _cleanHex(text)
    if hexs is None or len(hexs) % 2:
        raise t_exc.InvalidKeyIdentifier(mesg=f'Invalid key identifier: {text}', valu=text)

    return bytes.fromhex(hexs)

def genSerial():
    '''
    Generate a random serial number between 17 and 19 bytes long.

    The leading byte is never zero, so the encoded length is the chosen length
    and the value is never zero.

    Returns:
        int: The serial number.
    '''
    size = t_const.SERIAL_MIN_BYTES + secrets.randbelow(t_const.SERIAL_MAX_BYTES - t_const.SERIAL_MIN_BYTES + 1)
    lead = 1 + secrets.randbelow(255)
    return int.from_bytes(bytes((lead,)) + secrets.token_bytes(size - 1), 'big')
