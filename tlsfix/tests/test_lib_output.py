import tlsfix.tests.utils as t_t_utils

import tlsfix.lib.output as t_output

class TestOutPut(t_t_utils.FixTest):

    def test_output_str(self):
        outp = t_output.OutPutStr()
        outp.printf('foo')
        outp.printf('bar')

        self.eq(str(outp), 'foo\nbar\n')

    def test_output_nonl(self):
        outp = t_output.OutPutStr()
        outp.printf('foo', addnl=False)
        outp.printf('bar')

        self.eq(str(outp), 'foobar\n')
        self.eq(outp.mesgs, ['foo', 'bar\n'])

    def test_output_expect(self):
        outp = self.getTestOutp()
        outp.printf('saved: /tmp/root.crt')

        self.true(outp.expect('root.crt'))
        self.false(outp.expect('newp', throw=False))
        self.raises(Exception, outp.expect, 'newp')

        outp.clear()
        self.eq(str(outp), '')
