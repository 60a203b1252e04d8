from datetime import datetime


class Logger(object):
    '''Prints time-stamped progress messages, gated by a verbosity level.

    Verbosity: 0, silent or fatal errors; 1, begin and end; 2, progress log; 3, progress and results summary; 5, full report.
    '''

    def __init__(self, verbosity=2):
        self.verbosity = verbosity


    def log(self, txt, level=2):
        '''Prints a time-stamped text string.

        Args:
            | txt (str): text string to print.
            | level (int): minimum verbosity at which the string is printed.
        '''

        if self.verbosity >= level:
            timestamped_log_str = datetime.now().strftime('%Y-%m-%d %H:%M:%S') + ": " + txt
            print(timestamped_log_str)


    def warn(self, txt):
        '''Prints a time-stamped warning unless the logger is silent.'''

        self.log("WARNING: " + txt, level=1)
