# file eulactive/util.py
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
from io import BytesIO
import logging
import re

from dateutil import parser as dateparser
from dateutil.tz import tzutc
import requests
from rdflib import URIRef, Graph

from eulxml import xmlmap


logger = logging.getLogger(__name__)


def force_text(s, encoding='utf-8'):
    if isinstance(s, bytes):
        return str(s, encoding)
    return str(s)


def force_bytes(s, encoding='utf-8'):
    if isinstance(s, bytes):
        if encoding == 'utf-8':
            return s
        else:
            return s.decode('utf-8').encode(encoding)
    return str(s).encode(encoding)


class RequestFailed(IOError):
    '''An exception representing an arbitrary error while trying to access
    the object store or the search index over HTTP.
    '''
    error_regex = re.compile('<pre>.*\n(.*)\n', re.MULTILINE)

    def __init__(self, response, content=None):
        # init params:
        #  response = requests response with the error information
        #  content = optional content of the response body, if it needed to be read
        #            to determine what kind of exception to raise
        super(RequestFailed, self).__init__('%d %s' % (response.status_code, response.text))
        self.code = response.status_code
        self.reason = response.text
        self.detail = self.reason
        if response.status_code == requests.codes.server_error:
            if content is None:
                content = response.text
            content = force_text(content)
            # Fedora 500 errors include a stack-trace; keep the first line as detail
            if response.headers.get('content-type') == 'text/plain':
                self.detail = content.split('\n')[0]
            else:
                match = self.error_regex.findall(content)
                if len(match):
                    self.detail = match[0]


class PermissionDenied(RequestFailed):
    '''An exception representing a permission error (401 or 403) while
    trying to access a repository object or datastream.
    '''


class ValidationError(ValueError):
    '''Base class for errors raised when a datastream or relationship
    request is rejected before anything is changed.'''


class UnknownGroupError(ValidationError):
    'Requested named datastream group is not declared on the object class.'


class ContentMissingError(ValidationError):
    'Managed datastream was requested without any blob or file content.'


class ContentTypeMissingError(ValidationError):
    'No content type was given and none could be read from the blob.'


class ContentTypeMismatchError(ValidationError):
    'Supplied content type does not match the one required by the group.'


class InvalidDsidError(ValidationError):
    'Datastream id does not match the naming pattern of its group.'


class DatastreamTypeError(ValidationError):
    'Configured datastream type does not build a datastream.'


class DatastreamNotFound(ValidationError):
    'Requested datastream id is not present on the object.'


class RegistryFrozenError(ValidationError):
    'Datastream declarations are not allowed once a class is defined.'


class NotFoundError(LookupError):
    '''The object store or search index has no record for the requested
    identifier.'''


class IdentifierMismatchError(ValueError):
    '''A record returned by a backend does not belong to the requested
    identifier.'''


class ConsistencyWarning(UserWarning):
    '''Warning issued when an object carries legacy or inconsistent state
    that is tolerated rather than rejected.'''


def generate_dsid(existing_ids, prefix='DS'):
    '''Generate a datastream id of the form ``PREFIX<n>``, where *n* is one
    more than the number of existing ids matching ``^PREFIX\\d*$``.

    Ids are not guaranteed to be unique when members of the sequence have
    been removed out of order.

    :param existing_ids: iterable of the datastream ids currently in use
    :param prefix: id prefix; defaults to ``DS``
    :rtype: string
    '''
    pattern = re.compile('^%s\\d*$' % re.escape(prefix))
    count = len([dsid for dsid in existing_ids if pattern.match(dsid)])
    return '%s%d' % (prefix, count + 1)


def pids_from_uris(uris):
    '''Convert an ``info:fedora/`` uri, or a list of them, into pids.'''
    if isinstance(uris, (str, bytes)):
        uris = [uris]
    pids = []
    for uri in uris:
        uri = force_text(uri)
        if uri.startswith('info:fedora/'):
            uri = uri[len('info:fedora/'):]
        pids.append(uri)
    return pids


def parse_rdf(data, url, format=None):
    fobj = BytesIO(force_bytes(data))
    id = URIRef(url)
    graph = Graph(identifier=id)
    if format is None:
        graph.parse(fobj)
    else:
        graph.parse(fobj, format=format)
    return graph


def parse_xml_object(cls, data, url):
    doc = xmlmap.parseString(data, url)
    return cls(doc)


def datetime_to_fedoratime(datetime):
    # Fedora only handles 'Z' as a time-zone notation, so convert to UTC
    utctime = datetime.astimezone(tzutc())
    return utctime.strftime('%Y-%m-%dT%H:%M:%S') + '.%03d' % (utctime.microsecond // 1000) + 'Z'


def fedoratime_to_datetime(rep):
    if rep.endswith('Z'):
        rep = rep[:-1]      # strip Z for parsing
        tz = tzutc()
        # strptime creates a timezone-naive datetime
        dt = datetime.strptime(rep, '%Y-%m-%dT%H:%M:%S.%f')
        return datetime(dt.year, dt.month, dt.day, dt.hour, dt.minute, dt.second, dt.microsecond, tz)
    else:
        raise ValueError("Cannot parse '%s' as a Fedora datetime" % rep)


def parse_index_date(value):
    '''Parse a date string as stored in the search index (ISO 8601, with
    or without fractional seconds) into a timezone-aware datetime.
    Returns None for empty values.'''
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    dt = dateparser.parse(force_text(value))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=tzutc())
    return dt
