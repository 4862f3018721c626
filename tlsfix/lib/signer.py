'''
Turn resolved certificate templates into signed x509 certificates.
'''
import logging

import cryptography.x509 as c_x509
import cryptography.exceptions as c_exceptions
import cryptography.hazmat.primitives.hashes as c_hashes
import cryptography.hazmat.primitives.asymmetric.ec as c_ec
import cryptography.hazmat.primitives.asymmetric.rsa as c_rsa
import cryptography.hazmat.primitives.asymmetric.padding as c_padding
import cryptography.hazmat.primitives.asymmetric.ed25519 as c_ed25519
import cryptography.hazmat.primitives.serialization as c_serialization

from cryptography.x509.oid import AuthorityInformationAccessOID

import tlsfix.exc as t_exc
import tlsfix.lib.templates as t_templates

logger = logging.getLogger(__name__)

hashes = {
    'md5': c_hashes.MD5,
    'sha1': c_hashes.SHA1,
    'sha256': c_hashes.SHA256,
    'sha384': c_hashes.SHA384,
    'sha512': c_hashes.SHA512,
}

# elliptic curve key size -> default hash
curvehashes = {
    224: c_hashes.SHA256,
    256: c_hashes.SHA256,
    384: c_hashes.SHA384,
    521: c_hashes.SHA512,
}

def getKeyFamily(prvkey):
    if isinstance(prvkey, c_rsa.RSAPrivateKey):
        return 'rsa'
    if isinstance(prvkey, c_ec.EllipticCurvePrivateKey):
        return 'ec'
    if isinstance(prvkey, c_ed25519.Ed25519PrivateKey):
        return 'ed25519'
    return None

def getSignArgs(prvkey, sigalg=None):
    '''
    Get the hash algorithm and RSA padding used to sign with a key.

    Args:
        prvkey: The signing private key.
        sigalg (str): An optional signature algorithm name from the templates.sigalgs table.

    Returns:
        (tuple): A (hash, padding) tuple. Either may be None.
    '''
    family = getKeyFamily(prvkey)

    if sigalg is None:

        if family == 'rsa':
            return c_hashes.SHA256(), None

        if family == 'ec':
            hashcls = curvehashes.get(prvkey.curve.key_size, c_hashes.SHA256)
            return hashcls(), None

        if family == 'ed25519':
            return None, None

        raise t_exc.SigningFailed(mesg=f'Unsupported signing key: {prvkey.__class__.__name__}')

    algfamily, hashname, pss = t_templates.sigalgs[sigalg]
    if algfamily != family:
        mesg = f'Signature algorithm {sigalg} can not be used with a {family} key'
        raise t_exc.SigningFailed(mesg=mesg, sigalg=sigalg)

    if hashname is None:
        return None, None

    hashcls = hashes.get(hashname)
    if hashcls is None:
        raise t_exc.SigningFailed(mesg=f'Unsupported signature algorithm: {sigalg}', sigalg=sigalg)

    padding = None
    if pss:
        padding = c_padding.PSS(mgf=c_padding.MGF1(hashcls()), salt_length=c_padding.PSS.DIGEST_LENGTH)

    return hashcls(), padding

class Signer:
    '''
    Signs certificate templates.

    A store calls selfSign for entries without a parent and signWithParent for the rest,
    so subclasses may wrap either to observe signing.
    '''

    def selfSign(self, tmpl, prvkey):
        '''
        Self-sign a certificate template.

        Args:
            tmpl (CertTemplate): The resolved template.
            prvkey: The private key of the certificate, which also signs it.

        Returns:
            c_x509.Certificate: The certificate.
        '''
        issuer = tmpl.issuer
        if issuer is None:
            issuer = tmpl.subject

        aki = None
        if tmpl.aki is not None:
            aki = _getAkiOverride(tmpl.aki)

        return self._sign(tmpl, prvkey.public_key(), issuer, aki, prvkey)

    def signWithParent(self, tmpl, prvkey, parcert, parkey):
        '''
        Sign a certificate template with a parent certificate and key.

        Args:
            tmpl (CertTemplate): The resolved template.
            prvkey: The private key of the certificate being signed.
            parcert (c_x509.Certificate): The signing certificate.
            parkey: The private key of the signing certificate.

        Notes:
            An AKI override in the template is written in place of the parent's Subject Key Identifier.
            The parent certificate is not modified.

        Returns:
            c_x509.Certificate: The certificate.
        '''
        issuer = tmpl.issuer
        if issuer is None:
            issuer = parcert.subject

        if tmpl.aki is not None:
            aki = _getAkiOverride(tmpl.aki)
        else:
            aki = _getParentAki(parcert)

        return self._sign(tmpl, prvkey.public_key(), issuer, aki, parkey)

    def _sign(self, tmpl, pubkey, issuer, aki, signkey):

        algo, padding = getSignArgs(signkey, tmpl.sigalg)

        try:
            builder = self._genCertBuilder(tmpl, pubkey, issuer, aki)
            cert = builder.sign(private_key=signkey, algorithm=algo, rsa_padding=padding)
            byts = cert.public_bytes(c_serialization.Encoding.DER)

        except (ValueError, TypeError, c_exceptions.UnsupportedAlgorithm) as e:
            raise t_exc.SigningFailed(mesg=f'Failed to sign certificate: {e}') from e

        return c_x509.load_der_x509_certificate(byts)

    def _genCertBuilder(self, tmpl, pubkey, issuer, aki):

        builder = c_x509.CertificateBuilder()
        builder = builder.subject_name(tmpl.subject)
        builder = builder.issuer_name(issuer)
        builder = builder.not_valid_before(tmpl.notbefore)
        builder = builder.not_valid_after(tmpl.notafter)
        builder = builder.serial_number(tmpl.serial)
        builder = builder.public_key(pubkey)

        if (bc := tmpl.getBasicConstraints()) is not None:
            builder = builder.add_extension(bc, critical=True)

        if (ku := tmpl.getKeyUsage()) is not None:
            builder = builder.add_extension(ku, critical=True)

        if (eku := tmpl.getExtKeyUsage()) is not None:
            builder = builder.add_extension(eku, critical=False)

        if tmpl.ski is not None:
            ski = c_x509.SubjectKeyIdentifier(tmpl.ski)
        else:
            ski = c_x509.SubjectKeyIdentifier.from_public_key(pubkey)
        builder = builder.add_extension(ski, critical=False)

        if aki is not None:
            builder = builder.add_extension(aki, critical=False)

        if (sans := tmpl.getSubjectAltNames()) is not None:
            # an empty subject makes the alternative names the only identity
            critical = len(tmpl.subject) == 0
            builder = builder.add_extension(sans, critical=critical)

        if tmpl.ocsp:
            descs = [
                c_x509.AccessDescription(AuthorityInformationAccessOID.OCSP, c_x509.UniformResourceIdentifier(url))
                for url in tmpl.ocsp
            ]
            builder = builder.add_extension(c_x509.AuthorityInformationAccess(descs), critical=False)

        if tmpl.crls:
            points = [
                c_x509.DistributionPoint(full_name=[c_x509.UniformResourceIdentifier(url)],
                                         relative_name=None, reasons=None, crl_issuer=None)
                for url in tmpl.crls
            ]
            builder = builder.add_extension(c_x509.CRLDistributionPoints(points), critical=False)

        return builder

def _getAkiOverride(keyid):
    return c_x509.AuthorityKeyIdentifier(key_identifier=keyid,
                                         authority_cert_issuer=None,
                                         authority_cert_serial_number=None)

def _getParentAki(parcert):
    try:
        ext = parcert.extensions.get_extension_for_class(c_x509.SubjectKeyIdentifier)
    except c_x509.ExtensionNotFound:
        return c_x509.AuthorityKeyIdentifier.from_issuer_public_key(parcert.public_key())
    return c_x509.AuthorityKeyIdentifier.from_issuer_subject_key_identifier(ext.value)
