import pickle
import logging

import tlsfix.exc as t_exc

import tlsfix.tests.utils as t_t_utils

logger = logging.getLogger(__name__)

class ExcTest(t_t_utils.FixTest):

    def test_basic(self):
        e = t_exc.FixErr(mesg='words', foo='bar')
        self.eq(e.get('foo'), 'bar')
        self.eq("FixErr: foo='bar' mesg='words'", str(e))
        e.set('hehe', 1234)
        e.set('foo', 'words')
        self.eq("FixErr: foo='words' hehe=1234 mesg='words'", str(e))

        e.setdefault('defv', 1)
        self.eq("FixErr: defv=1 foo='words' hehe=1234 mesg='words'", str(e))

        e.setdefault('defv', 2)
        self.eq("FixErr: defv=1 foo='words' hehe=1234 mesg='words'", str(e))

        e.update({'foo': 'baz', 'name': 'root'})
        self.eq("FixErr: defv=1 foo='baz' hehe=1234 mesg='words' name='root'", str(e))
        self.eq(e.items()['name'], 'root')

        self.eq(e.errname, 'FixErr')
        self.none(e.get('newp'))
        self.eq(e.get('newp', 'defv'), 'defv')

        e2 = t_exc.InvalidPurpose(mesg='haha')
        self.eq(e2.errname, 'InvalidPurpose')

    def test_pickled_fixerr(self):
        e = t_exc.ChainTooLong(mesg='too long', name='leaf', depth=6)
        e2 = pickle.loads(pickle.dumps(e))
        self.eq(e2.errname, 'ChainTooLong')
        self.eq(e2.get('depth'), 6)
        self.eq(str(e2), str(e))

    def test_hierarchy(self):
        self.true(issubclass(t_exc.CycleDetected, t_exc.ChainTooLong))

        certerrs = (
            t_exc.InvalidPurpose,
            t_exc.InvalidTimeFormat,
            t_exc.InvalidKeyUsage,
            t_exc.InvalidExtKeyUsage,
            t_exc.InvalidSerialNumber,
            t_exc.InvalidKeyIdentifier,
            t_exc.InvalidSignatureAlgorithm,
            t_exc.InvalidSubject,
            t_exc.InvalidIPAddress,
            t_exc.InvalidKeySize,
            t_exc.UnsupportedKeyType,
            t_exc.CertificateNotFound,
            t_exc.ChainTooLong,
            t_exc.CycleDetected,
            t_exc.SigningFailed,
            t_exc.BadCertVerify,
        )
        for cls in certerrs:
            self.true(issubclass(cls, t_exc.CertErr), msg=cls.__name__)

        for cls in (t_exc.BadArg, t_exc.BadConfValu, t_exc.DupFileName, t_exc.NoSuchFile):
            self.true(issubclass(cls, t_exc.FixErr))
            self.false(issubclass(cls, t_exc.CertErr))
