'''
Exceptions used by tlsfix, all inheriting from FixErr
'''

class FixErr(Exception):

    def __init__(self, *args, **info):
        self.errinfo = info
        self.errname = self.__class__.__name__
        Exception.__init__(self, self._getExcMsg())

    def _getExcMsg(self):
        props = sorted(self.errinfo.items())
        displ = ' '.join(['%s=%r' % (p, v) for (p, v) in props])
        return '%s: %s' % (self.__class__.__name__, displ)

    def _setExcMesg(self):
        '''Should be called when self.errinfo is modified.'''
        self.args = (self._getExcMsg(),)

    def __setstate__(self, state):
        '''Pickle support.'''
        super(FixErr, self).__setstate__(state)
        self._setExcMesg()

    def items(self):
        return {k: v for k, v in self.errinfo.items()}

    def get(self, name, defv=None):
        '''
        Return a value from the errinfo dict.

        Example:

            try:
                buildStore(certs)
            except FixErr as e:
                name = e.get('name')

        '''
        return self.errinfo.get(name, defv)

    def set(self, name, valu):
        '''
        Set a value in the errinfo dict.
        '''
        self.errinfo[name] = valu
        self._setExcMesg()

    def setdefault(self, name, valu):
        '''
        Set a value in errinfo dict if it is not already set.
        '''
        if name in self.errinfo:
            return
        self.errinfo[name] = valu
        self._setExcMesg()

    def update(self, items: dict):
        '''Update multiple items in the errinfo dict at once.'''
        self.errinfo.update(items)
        self._setExcMesg()

class BadArg(FixErr):
    ''' Improper function arguments '''
    pass

class BadConfValu(FixErr):
    '''
    The configuration value provided is not valid.

    This should contain the config name and mesg.
    '''
    pass

class DupFileName(FixErr): pass
class NoSuchFile(FixErr): pass

class CertErr(FixErr):
    '''
    Raised when a certificate description can not be turned into a key and certificate.
    '''
    pass

class InvalidPurpose(CertErr): pass
class InvalidTimeFormat(CertErr): pass
class InvalidKeyUsage(CertErr): pass
class InvalidExtKeyUsage(CertErr): pass
class InvalidSerialNumber(CertErr): pass
class InvalidKeyIdentifier(CertErr): pass
class InvalidSignatureAlgorithm(CertErr): pass
class InvalidSubject(CertErr): pass
class InvalidIPAddress(CertErr): pass

class InvalidKeySize(CertErr): pass
class UnsupportedKeyType(CertErr): pass

class CertificateNotFound(CertErr):
    '''A certificate name (usually a parent reference) is not present in the store.'''

class ChainTooLong(CertErr):
    '''The parent chain of a certificate does not reach a root within the depth limit.'''

class CycleDetected(ChainTooLong):
    '''The parent chain of a certificate refers back to itself.'''

class SigningFailed(CertErr):
    '''The underlying signing primitive refused to produce a certificate.'''

class BadCertVerify(CertErr):
    '''Raised when there is a failure to verify a certificate against its chain.'''
