# file eulactive/indexdata/util.py
#
#   Copyright 2010,2011 Emory University Libraries
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

from datetime import datetime

from eulactive.util import datetime_to_fedoratime, force_text

FIELD_SUFFIXES = {
    'date': '_dt',
    'string': '_t',
    'text': '_t',
    'symbol': '_s',
    'integer': '_i',
    'long': '_l',
    'boolean': '_b',
    'float': '_f',
    'double': '_d',
}
'field type -> dynamic field suffix'

DEFAULT_SUFFIX = '_t'

# field names that are never suffixed
RESERVED_FIELDS = ('id',)


def solr_name(field_name, field_type='string'):
    '''Index field name for a field of the given type, e.g.
    ``solr_name('title', 'string')`` is ``title_t``.

    :param field_name: field name
    :param field_type: one of the keys of :data:`FIELD_SUFFIXES`;
        unknown types use :data:`DEFAULT_SUFFIX`
    :rtype: string
    '''
    field_name = force_text(field_name)
    if field_name in RESERVED_FIELDS:
        return field_name
    return field_name + FIELD_SUFFIXES.get(field_type, DEFAULT_SUFFIX)


def solr_value(value):
    '''Convert a python value for inclusion in an index document;
    datetimes are formatted as UTC ``Z`` timestamps.'''
    if isinstance(value, datetime):
        return datetime_to_fedoratime(value)
    return value
