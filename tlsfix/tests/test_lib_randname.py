import tlsfix.lib.randname as t_randname
import tlsfix.lib.templates as t_templates

import tlsfix.tests.utils as t_t_utils

class RandNameTest(t_t_utils.FixTest):

    def test_randname_name(self):

        for _ in range(100):
            name = t_randname.name(8)
            self.ge(len(name), 3)
            self.le(len(name), 8)
            self.true(name.isalpha())
            self.true(name[0].isupper())

        self.len(1, t_randname.name(1))
        self.len(1, t_randname.name(0))

    def test_randname_pkix(self):

        subj = t_randname.pkixName()
        self.eq(set(subj.keys()), {'cn', 'o', 'l', 'st', 'c'})
        self.isin(subj['c'], t_randname.countries)
        self.true(subj['cn'].endswith('.test'))
        self.eq(subj['cn'], subj['cn'].lower())
        self.isin(subj['o'].split(' ')[-1], t_randname.orgsuffixes)

        # every generated subject is usable as a certificate name
        for _ in range(20):
            name = t_templates.genName(t_randname.pkixName())
            self.len(5, name)
