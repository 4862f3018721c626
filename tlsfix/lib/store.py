'''
Build a named set of keys and certificates, signing parents before their children.
'''
import os
import logging

from OpenSSL import crypto  # type: ignore

import cryptography.x509 as c_x509
import cryptography.hazmat.primitives.serialization as c_serialization

import tlsfix.exc as t_exc
import tlsfix.common as t_common
import tlsfix.lib.keys as t_keys
import tlsfix.lib.const as t_const
import tlsfix.lib.signer as t_signer
import tlsfix.lib.templates as t_templates

logger = logging.getLogger(__name__)

STATE_PENDING = 'pending'
STATE_RESOLVED = 'resolved'
STATE_SIGNED = 'signed'
STATE_FAILED = 'failed'

def _unpackContextError(e: crypto.X509StoreContextError) -> str:
    if e.args and isinstance(e.args[0], str):
        return e.args[0]
    return 'Certificate failed to verify.'

class KeyAndCert:
    '''
    A private key and the certificate signed for it.

    Args:
        name (str): The name of the entry.
        parent (str): The name of the signing entry, or None for a self-signed entry.
    '''
    def __init__(self, name, parent=None):
        self.name = name
        self.parent = parent
        self.state = STATE_PENDING

        self.prvkey = None
        self.keyder = None
        self.tmpl = None

        self.cert = None
        self.chain = ()
        self.depth = 0

    def isSigned(self):
        return self.state == STATE_SIGNED

    def isRootCa(self):
        '''
        Returns:
            bool: True if the entry is self-signed and marked as a CA.
        '''
        if self.parent is not None or self.cert is None:
            return False

        try:
            ext = self.cert.extensions.get_extension_for_class(c_x509.BasicConstraints)
        except c_x509.ExtensionNotFound:
            return False

        return ext.value.ca

    def getSki(self):
        '''
        Get the Subject Key Identifier written into the certificate.

        Returns:
            bytes: The key identifier, or None if the entry is not signed.
        '''
        if self.cert is None:
            return None

        try:
            ext = self.cert.extensions.get_extension_for_class(c_x509.SubjectKeyIdentifier)
        except c_x509.ExtensionNotFound:
            return None

        return ext.value.digest

    def getPrivKey(self):
        return self.prvkey

    def getKeyDer(self):
        return self.keyder

    def getKeyPem(self):
        if self.prvkey is None:
            return None
        return t_keys.getKeyPem(self.prvkey)

    def getCert(self):
        return self.cert

    def getCertDer(self):
        if self.cert is None:
            return None
        return self.cert.public_bytes(c_serialization.Encoding.DER)

    def getCertPem(self):
        if self.cert is None:
            return None
        return self.cert.public_bytes(c_serialization.Encoding.PEM)

    def getCertChainDer(self):
        '''
        Get the DER encoded certificate followed by its ancestors, ending with the self-signed root.

        Returns:
            list: A list of DER bytes.
        '''
        if self.cert is None:
            return None
        certs = (self.cert,) + self.chain
        return [cert.public_bytes(c_serialization.Encoding.DER) for cert in certs]

    def getCertChainPem(self):
        '''
        Get the PEM encoded certificate followed by its ancestors, as one bytes blob.
        '''
        if self.cert is None:
            return None
        certs = (self.cert,) + self.chain
        return b''.join(cert.public_bytes(c_serialization.Encoding.PEM) for cert in certs)

    def save(self, dirn, chain=False, overwrite=False):
        '''
        Save the key and certificate as PEM files in a directory.

        Args:
            dirn (str): The output directory. It is created if it does not exist.
            chain (bool): Also write ``<name>.chain.crt`` containing the certificate and its ancestors.
            overwrite (bool): Replace existing files instead of raising DupFileName.

        Returns:
            list: The paths which were written.
        '''
        if not self.isSigned():
            raise t_exc.SigningFailed(mesg=f'Certificate {self.name} is not signed', name=self.name)

        dirn = t_common.gendir(dirn)

        files = [
            (f'{self.name}.key', self.getKeyPem(), 0o600),
            (f'{self.name}.crt', self.getCertPem(), 0o644),
        ]
        if chain:
            files.append((f'{self.name}.chain.crt', self.getCertChainPem(), 0o644))

        paths = [os.path.join(dirn, fn) for (fn, byts, mode) in files]
        if not overwrite:
            for path in paths:
                _checkDupFile(path)

        for path, (fn, byts, mode) in zip(paths, files):
            t_common.putfile(path, byts, mode=mode, overwrite=overwrite)

        return paths

def _checkDupFile(path):
    if os.path.isfile(path):
        raise t_exc.DupFileName(mesg=f'Duplicate file {path}', path=path)

class CertStore:
    '''
    An in-memory set of named keys and certificates.

    Args:
        signer (Signer): Signs the certificates. Defaults to tlsfix.lib.signer.Signer().

    Examples:
        Build a root CA and a server certificate it signs::

            store = CertStore.build({
                'root': {'purpose': 'root-ca', 'subject': {'cn': 'Test Root'}},
                'www': {'parent': 'root', 'hostnames': ['www.example.test']},
            })
            pem = store.req('www').getCertChainPem()

    Notes:
        Use CertStore.build() to construct a store. A failure while building raises and no
        store is returned.
    '''
    def __init__(self, signer=None):

        if signer is None:
            signer = t_signer.Signer()

        self.signer = signer
        self.entries = {}

    @classmethod
    def build(cls, descs, signer=None):
        '''
        Build a store from a mapping of certificate names to descriptions.

        Args:
            descs (dict): A dictionary of name to certificate description.
            signer (Signer): An optional Signer instance.

        Returns:
            CertStore: The store with every entry signed.
        '''
        store = cls(signer=signer)

        deferred = []
        for name, desc in descs.items():

            entry = store._initEntry(name, desc)
            store.entries[name] = entry

            if entry.parent is None:
                store._signEntry(entry)
                continue

            deferred.append(entry)

        for entry in deferred:
            store._reqAncestry(entry)
            store._reqSigned(entry)

        logger.info('Built %d certificates (%d self-signed)', len(store.entries), len(store.entries) - len(deferred),
                    extra={'tlsfix': {'count': len(store.entries)}})

        return store

    def _initEntry(self, name, desc):

        if desc is None:
            desc = {}

        entry = KeyAndCert(name, parent=desc.get('parent') or None)

        try:
            entry.tmpl = t_templates.resolve(desc)
            entry.prvkey = t_keys.genPrivKey(desc.get('keyType'))

        except t_exc.FixErr as e:
            e.setdefault('name', name)
            raise

        entry.keyder = t_keys.getKeyDer(entry.prvkey)

        if entry.tmpl.ski is None:
            entry.tmpl.ski = c_x509.SubjectKeyIdentifier.from_public_key(entry.prvkey.public_key()).digest

        entry.state = STATE_RESOLVED
        return entry

    def _reqAncestry(self, entry):
        # walk the parent names so problems are found before anything is signed
        seen = {entry.name}

        hops = 0
        name = entry.parent
        while name is not None:

            hops += 1

            if name in seen:
                mesg = f'Certificate {entry.name} has a cycle in its parents at {name}'
                raise t_exc.CycleDetected(mesg=mesg, name=entry.name, parent=name)

            seen.add(name)

            parent = self.entries.get(name)
            if parent is None:
                mesg = f'Parent certificate {name} of {entry.name} not found'
                raise t_exc.CertificateNotFound(mesg=mesg, name=entry.name, parent=name)

            name = parent.parent

        if hops > t_const.MAX_CHAIN_DEPTH:
            mesg = f'Certificate {entry.name} is {hops} certificates from its root (max {t_const.MAX_CHAIN_DEPTH})'
            raise t_exc.ChainTooLong(mesg=mesg, name=entry.name, depth=hops)

        return hops

    def _reqSigned(self, entry):

        if entry.isSigned():
            return entry

        if entry.parent is None:
            return self._signEntry(entry)

        parent = self._reqSigned(self.entries[entry.parent])
        if not parent.isSigned():
            mesg = f'Parent certificate {parent.name} of {entry.name} is not signed'
            raise t_exc.SigningFailed(mesg=mesg, name=entry.name, parent=parent.name)

        return self._signEntry(entry, parent=parent)

    def _signEntry(self, entry, parent=None):

        try:
            if parent is None:
                cert = self.signer.selfSign(entry.tmpl, entry.prvkey)
            else:
                cert = self.signer.signWithParent(entry.tmpl, entry.prvkey, parent.cert, parent.prvkey)

        except t_exc.FixErr as e:
            entry.state = STATE_FAILED
            e.setdefault('name', entry.name)
            raise

        entry.cert = cert
        if parent is not None:
            entry.chain = (parent.cert,) + parent.chain
            entry.depth = parent.depth + 1

        entry.tmpl = None
        entry.state = STATE_SIGNED

        logger.debug('Signed certificate %s', entry.name,
                     extra={'tlsfix': {'name': entry.name, 'parent': entry.parent, 'depth': entry.depth,
                                       'serial': f'{cert.serial_number:x}', 'ski': entry.getSki().hex()}})
        return entry

    def get(self, name):
        '''
        Get an entry by name.

        Returns:
            KeyAndCert: The entry, or None if it does not exist.
        '''
        return self.entries.get(name)

    def req(self, name):
        '''
        Get an entry by name, raising CertificateNotFound if it does not exist.
        '''
        entry = self.entries.get(name)
        if entry is None:
            raise t_exc.CertificateNotFound(mesg=f'Certificate {name} not found', name=name)
        return entry

    def names(self):
        return sorted(self.entries.keys())

    def items(self):
        return [(name, self.entries[name]) for name in self.names()]

    def __len__(self):
        return len(self.entries)

    def __contains__(self, name):
        return name in self.entries

    def verify(self, name):
        '''
        Verify an entry's certificate against its own chain with OpenSSL.

        Args:
            name (str): The entry name.

        Notes:
            The last certificate of the chain (the self-signed root) is trusted. Any
            intermediates are supplied as untrusted chain certificates.

        Raises:
            BadCertVerify: If the certificate does not verify.

        Returns:
            c_x509.Certificate: The verified certificate.
        '''
        entry = self.req(name)
        if not entry.isSigned():
            raise t_exc.BadCertVerify(mesg=f'Certificate {name} is not signed', name=name)

        certs = (entry.cert,) + entry.chain
        root = certs[-1]
        intermediates = [crypto.X509.from_cryptography(c) for c in certs[1:-1]]

        store = crypto.X509Store()
        store.add_cert(crypto.X509.from_cryptography(root))

        ctx = crypto.X509StoreContext(store, crypto.X509.from_cryptography(entry.cert), chain=intermediates)
        try:
            ctx.verify_certificate()
        except crypto.X509StoreContextError as e:
            raise t_exc.BadCertVerify(mesg=_unpackContextError(e), name=name) from None

        return entry.cert

    def save(self, dirn, chain=False, overwrite=False):
        '''
        Save every entry with KeyAndCert.save(), in name order.

        Returns:
            list: The paths which were written.
        '''
        paths = []
        if not overwrite:
            for name, entry in self.items():
                for fn in (f'{name}.key', f'{name}.crt'):
                    _checkDupFile(t_common.genpath(dirn, fn))
                if chain:
                    _checkDupFile(t_common.genpath(dirn, f'{name}.chain.crt'))

        for name, entry in self.items():
            paths.extend(entry.save(dirn, chain=chain, overwrite=overwrite))
        return paths

def buildStore(descs, signer=None):
    '''
    Build a CertStore from a mapping of certificate names to descriptions.
    '''
    return CertStore.build(descs, signer=signer)
