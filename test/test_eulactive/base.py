# file test_eulactive/base.py
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

from collections import OrderedDict
from datetime import datetime
from io import BytesIO
import logging

from dateutil.tz import tzutc
from mock import Mock

from eulactive import models
from eulactive.rdfns import predicate_name
from eulactive.server import Repository
from eulactive.util import RequestFailed, force_bytes, parse_rdf, \
    pids_from_uris

logger = logging.getLogger(__name__)


def error_response(status_code=500, text='Internal Server Error'):
    'Mock requests response for building :class:`RequestFailed` errors.'
    return Mock(status_code=status_code, text=text,
                headers={'content-type': 'text/plain'})


class FakeProfile(object):
    def __init__(self, label=None, owner=None, state='A', created=None, modified=None):
        self.label = label
        self.owner = owner
        self.state = state
        self.created = created
        self.modified = modified


class FakeManifestEntry(object):
    def __init__(self, dsid, label, mimeType):
        self.dsid = dsid
        self.label = label
        self.mimeType = mimeType


class FakeRepository(Repository):
    '''In-memory object store with the :class:`Repository` object store
    interface.  Object access and type inference come from
    :class:`Repository`; every backend call is recorded in :attr:`calls`.'''

    default_pidspace = 'test'

    def __init__(self, index=None, index_updates=False):
        self.index = index
        self.index_updates = index_updates
        self.indexer = None
        self.objects = {}
        self.datastreams = {}
        self.calls = []
        # (pid, dsid) pairs that fail on save
        self.fail_datastreams = set()
        self._last_pid = 0

    def mint_identifier(self, namespace=None):
        self.calls.append(('mint_identifier', namespace))
        self._last_pid += 1
        return '%s:%d' % (namespace or self.default_pidspace, self._last_pid)

    def fetch(self, pid):
        self.calls.append(('fetch', pid))
        return FakeProfile(**self.objects[pid])

    def fetch_datastream_manifest(self, pid):
        self.calls.append(('fetch_datastream_manifest', pid))
        return [FakeManifestEntry(dsid, ds['label'], ds['mimetype'])
                for dsid, ds in self.datastreams.get(pid, {}).items()]

    def fetch_datastream_content(self, pid, dsid):
        self.calls.append(('fetch_datastream_content', pid, dsid))
        return self.datastreams[pid][dsid].get('content', b'')

    def save(self, obj):
        self.calls.append(('save', obj.pid))
        now = datetime.now(tzutc())
        if obj.new_object:
            if obj.pid in self.objects:
                raise RequestFailed(error_response(text='%s already exists' % obj.pid))
            self.objects[obj.pid] = {'label': obj.label, 'owner': obj.owner,
                                     'state': obj.state or 'A',
                                     'created': now, 'modified': now}
            self.datastreams[obj.pid] = OrderedDict()
        elif obj.info_modified:
            self.objects[obj.pid].update({'label': obj.label, 'owner': obj.owner,
                                          'state': obj.state, 'modified': now})
        return True

    def save_datastream(self, obj, ds):
        self.calls.append(('save_datastream', obj.pid, ds.dsid))
        if (obj.pid, ds.dsid) in self.fail_datastreams:
            raise RequestFailed(error_response())
        content = ds._raw_content()
        if hasattr(content, 'read'):
            content = content.read()
        entry = self.datastreams[obj.pid].setdefault(ds.dsid, {})
        entry.update({'label': ds.label, 'mimetype': ds.mimetype})
        if content is not None:
            entry['content'] = force_bytes(content)
        return True

    def delete(self, obj):
        self.calls.append(('delete', obj.pid))
        del self.objects[obj.pid]
        del self.datastreams[obj.pid]
        return True

    def inbound_relationships(self, uri):
        self.calls.append(('inbound_relationships', uri))
        inbound = {}
        for pid, datastreams in self.datastreams.items():
            if 'RELS-EXT' not in datastreams:
                continue
            graph = parse_rdf(datastreams['RELS-EXT']['content'],
                              'info:fedora/' + pid, format='xml')
            for subject, predicate, obj in graph:
                if str(obj) == uri:
                    inbound.setdefault(predicate_name(predicate), []).extend(pids_from_uris(subject))
        return inbound

    def calls_for(self, name):
        return [call for call in self.calls if call[0] == name]


class UploadedFile(BytesIO):
    'File-like blob with upload metadata, as provided by web frameworks.'
    def __init__(self, data, content_type=None, original_filename=None):
        BytesIO.__init__(self, data)
        self.content_type = content_type
        self.original_filename = original_filename


def book_properties(ds):
    ds.label = 'Properties'
    ds.field('title', 'string')
    ds.field('pages', 'integer')


class Book(models.DigitalObject):
    properties = models.StaticDatastream('properties', models.MetadataDatastream,
                                         book_properties)
    thumbnail = models.NamedDatastream(prefix='THUMB', mimetype='image/png')
    page = models.NamedDatastream(prefix='PAGE')


class Volume(Book):
    descMetadata = models.StaticDatastream('descMetadata', models.DublinCoreDatastream)
    images = models.NamedDatastream()


class Collection(models.DigitalObject):
    members = models.Relation('has_collection_member')
