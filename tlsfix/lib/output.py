'''
Hookable output for the command line tools.
'''
import sys

class OutPut:

    def printf(self, mesg, addnl=True):

        if addnl:
            mesg += '\n'

        return self._rawOutPut(mesg)

    def _rawOutPut(self, mesg):
        sys.stdout.write(mesg)

class OutPutStr(OutPut):
    '''
    Collect output in memory instead of writing it to stdout.
    '''
    def __init__(self):
        self.mesgs = []

    def _rawOutPut(self, mesg):
        self.mesgs.append(mesg)

    def __str__(self):
        return ''.join(self.mesgs)
