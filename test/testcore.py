# file testcore.py
#
#   Copyright 2011 Emory University Libraries
#
#   Licensed under the Apache License, Version 2.0 (the "License");
#   you may not use this file except in compliance with the License.
#   You may obtain a copy of the License at
#
#       http://www.apache.org/licenses/LICENSE-2.0
#
#   Unless required by applicable law or agreed to in writing, software
#   distributed under the License is distributed on an "AS IS" BASIS,
#   WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#   See the License for the specific language governing permissions and
#   limitations under the License.

import logging
import sys
import unittest


def get_test_runner():
    return unittest.TextTestRunner(sys.stdout, verbosity=1)


def main(testRunner=None, *args, **kwargs):
    if testRunner is None:
        testRunner = get_test_runner()
    logging.basicConfig(level=logging.WARNING)

    unittest.main(testRunner=testRunner, *args, **kwargs)
