'''
Test helpers for tlsfix.

Test classes derive from FixTest, which adds short assertion names and fixtures for
temporary directories, configuration files, captured output and captured logs::

    import tlsfix.tests.utils as t_t_utils

    class MyTest(t_t_utils.FixTest):

        def test_thing(self):
            with self.getTestDir() as dirn:
                path = self.writeConf(dirn, b'certs:\\n  root: {purpose: root-ca}\\n')
'''
import io
import os
import json
import stat
import shutil
import logging
import tempfile
import unittest
import contextlib

import cryptography.x509 as c_x509

import tlsfix.exc as t_exc
import tlsfix.common as t_common
import tlsfix.lib.output as t_output
import tlsfix.lib.structlog as t_structlog

class TstOutPut(t_output.OutPutStr):

    def expect(self, substr, throw=True):
        '''
        Check if a string is present in the captured output.

        Args:
            substr (str): String to check for the existence of.
            throw (bool): If True, a missing substr raises FixErr.

        Returns:
            bool: True if the string is present; False if it is not and throw is False.
        '''
        outs = str(self)
        if outs.find(substr) == -1:
            if throw:
                raise t_exc.FixErr(mesg=f'TstOutPut.expect({substr}) not in {outs}')
            return False
        return True

    def clear(self):
        self.mesgs.clear()

class LogStream(io.StringIO):
    '''
    Captured log output.
    '''
    def jsonlines(self) -> list:
        '''Decode the captured records of a struct=True stream.'''
        return jsonlines(self.getvalue())

def jsonlines(text: str):
    return [json.loads(line) for line in text.split('\n') if line.strip()]

def getCertExt(cert, cls):
    '''
    Get the value of a certificate extension by its cryptography class.

    Raises:
        cryptography.x509.ExtensionNotFound: If the certificate does not carry the extension.
    '''
    return cert.extensions.get_extension_for_class(cls).value

def getSki(cert):
    return getCertExt(cert, c_x509.SubjectKeyIdentifier).digest

def getAki(cert):
    return getCertExt(cert, c_x509.AuthorityKeyIdentifier).key_identifier

def getFileMode(path):
    return stat.S_IMODE(os.stat(path).st_mode)

class FixTest(unittest.TestCase):

    @contextlib.contextmanager
    def getTestDir(self, chdir=False):
        '''
        Get a temporary directory which is removed afterwards.

        Args:
            chdir (bool): If true, chdir to the directory while it is in use.

        Yields:
            str: The directory path.
        '''
        curd = os.getcwd()
        tempdir = tempfile.mkdtemp()

        try:
            if chdir:
                os.chdir(tempdir)
            yield tempdir

        finally:
            if chdir:
                os.chdir(curd)
            shutil.rmtree(tempdir, ignore_errors=True)

    def writeConf(self, dirn, byts, name='certs.conf'):
        '''
        Write (or replace) a configuration file in a test directory and return its path.
        '''
        return t_common.putfile(os.path.join(dirn, name), byts, overwrite=True)

    def getTestOutp(self):
        return TstOutPut()

    @contextlib.contextmanager
    def getLoggerStream(self, logname, struct=False):
        '''
        Capture the DEBUG and higher records of a logger.

        Args:
            logname (str): Name of the logger.
            struct (bool): Format the records with JsonFormatter for stream.jsonlines().

        Examples:
            Check the message logged while building a store::

                with self.getLoggerStream('tlsfix.lib.store') as stream:
                    t_store.buildStore(descs)

                self.isin('Built 2 certificates', stream.getvalue())

        Yields:
            LogStream: The captured output.
        '''
        stream = LogStream()
        handler = logging.StreamHandler(stream)
        if struct:
            handler.setFormatter(t_structlog.JsonFormatter())

        lgr = logging.getLogger(logname)
        oldlevel = lgr.level
        lgr.addHandler(handler)
        lgr.setLevel(logging.DEBUG)

        try:
            yield stream
        finally:
            lgr.removeHandler(handler)
            lgr.setLevel(oldlevel)

    @contextlib.contextmanager
    def setTstEnvars(self, **props):
        '''
        Set environment variables (run through str()) for the duration of a with block.
        '''
        prop_orig = {}
        for key, valu in props.items():
            prop_orig[key] = os.environ.get(key)
            os.environ[key] = str(valu)

        try:
            yield
        finally:
            for key, valu in prop_orig.items():
                if valu is None:
                    del os.environ[key]
                else:
                    os.environ[key] = valu

    def eq(self, x, y, msg=None):
        self.assertEqual(x, y, msg=msg)

    def ne(self, x, y):
        self.assertNotEqual(x, y)

    def true(self, x, msg=None):
        self.assertTrue(x, msg=msg)

    def false(self, x, msg=None):
        self.assertFalse(x, msg=msg)

    def nn(self, x, msg=None):
        self.assertIsNotNone(x, msg=msg)

    def none(self, x, msg=None):
        self.assertIsNone(x, msg=msg)

    def isin(self, member, container, msg=None):
        self.assertIn(member, container, msg=msg)

    def notin(self, member, container, msg=None):
        self.assertNotIn(member, container, msg=msg)

    def gt(self, x, y, msg=None):
        self.assertGreater(x, y, msg=msg)

    def ge(self, x, y, msg=None):
        self.assertGreaterEqual(x, y, msg=msg)

    def lt(self, x, y, msg=None):
        self.assertLess(x, y, msg=msg)

    def le(self, x, y, msg=None):
        self.assertLessEqual(x, y, msg=msg)

    def len(self, x, obj, msg=None):
        '''
        Assert that the length of an object is equal to X
        '''
        self.assertEqual(x, len(obj), msg=msg)

    def isinstance(self, obj, cls, msg=None):
        self.assertIsInstance(obj, cls, msg=msg)

    def raises(self, *args, **kwargs):
        return self.assertRaises(*args, **kwargs)
