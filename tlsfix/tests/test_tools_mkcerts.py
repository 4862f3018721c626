import os

import cryptography.x509 as c_x509

import tlsfix.tools.mkcerts as t_mkcerts

import tlsfix.tests.utils as t_t_utils

certsyaml = b'''
certs:
  root:
    keyType: p256
    purpose: root-ca
    subject:
      cn: Test Root
  inter:
    keyType: p256
    purpose: intermediate-ca
    parent: root
  www:
    keyType: p256
    parent: inter
    hostnames:
      - www.example.test
'''

cycleyaml = b'''
certs:
  a:
    parent: b
  b:
    parent: a
'''

class MkCertsTest(t_t_utils.FixTest):

    def test_mkcerts(self):

        with self.getTestDir() as dirn:

            conf = self.writeConf(dirn, certsyaml)
            outdir = os.path.join(dirn, 'out')

            outp = self.getTestOutp()
            argv = ['--config', conf, '--outdir', outdir, '--chain', '--verify']
            self.eq(0, t_mkcerts.main(argv, outp=outp))

            outp.expect('verified: root')
            outp.expect('verified: inter')
            outp.expect('verified: www')
            outp.expect('saved: %s' % (os.path.join(outdir, 'www.chain.crt'),))

            names = sorted(os.listdir(outdir))
            self.eq(names, ['inter.chain.crt', 'inter.crt', 'inter.key',
                            'root.chain.crt', 'root.crt', 'root.key',
                            'www.chain.crt', 'www.crt', 'www.key'])

            with open(os.path.join(outdir, 'www.chain.crt'), 'rb') as fd:
                certs = c_x509.load_pem_x509_certificates(fd.read())
            self.len(3, certs)
            self.eq(certs[1].subject, certs[0].issuer)
            self.eq(certs[2].subject, certs[1].issuer)

            # existing files are left alone
            outp = self.getTestOutp()
            self.eq(-1, t_mkcerts.main(['--config', conf, '--outdir', outdir], outp=outp))
            outp.expect('file exists:')
            self.false(outp.expect('saved:', throw=False))

            outp = self.getTestOutp()
            self.eq(0, t_mkcerts.main(['--config', conf, '--outdir', outdir, '--overwrite'], outp=outp))
            outp.expect('saved: %s' % (os.path.join(outdir, 'root.key'),))

    def test_mkcerts_envar(self):

        with self.getTestDir() as dirn:

            conf = self.writeConf(dirn, certsyaml, name='other.yaml')

            outp = self.getTestOutp()
            with self.setTstEnvars(TLSFIX_CONFIG=conf):
                self.eq(0, t_mkcerts.main(['--outdir', dirn], outp=outp))

            outp.expect('saved: %s' % (os.path.join(dirn, 'www.crt'),))
            self.false(os.path.isfile(os.path.join(dirn, 'www.chain.crt')))

    def test_mkcerts_default_config(self):

        with self.getTestDir(chdir=True) as dirn:

            outp = self.getTestOutp()
            self.eq(1, t_mkcerts.main([], outp=outp))
            outp.expect('error: NoSuchFile')

            self.writeConf(dirn, certsyaml)

            outp = self.getTestOutp()
            self.eq(0, t_mkcerts.main([], outp=outp))
            self.true(os.path.isfile(os.path.join(dirn, 'root.key')))

    def test_mkcerts_errors(self):

        with self.getTestDir() as dirn:

            outp = self.getTestOutp()
            self.eq(1, t_mkcerts.main(['--config', os.path.join(dirn, 'newp.conf')], outp=outp))
            outp.expect('error: NoSuchFile')

            conf = self.writeConf(dirn, cycleyaml)
            outp = self.getTestOutp()
            self.eq(1, t_mkcerts.main(['--config', conf, '--outdir', dirn], outp=outp))
            outp.expect('error: CycleDetected')

            conf = self.writeConf(dirn, b'certs:\n  root:\n    keyType: dsa-1024\n')
            outp = self.getTestOutp()
            self.eq(1, t_mkcerts.main(['--config', conf, '--outdir', dirn], outp=outp))
            outp.expect('error: UnsupportedKeyType')

            conf = self.writeConf(dirn, b'certs:\n  root:\n    newp: 1\n')
            outp = self.getTestOutp()
            self.eq(1, t_mkcerts.main(['--config', conf, '--outdir', dirn], outp=outp))
            outp.expect('error: BadConfValu')

            self.eq([], [fn for fn in os.listdir(dirn) if not fn.endswith('.conf')])

            outp = self.getTestOutp()
            self.eq(1, t_mkcerts.main(['--newp'], outp=outp))
