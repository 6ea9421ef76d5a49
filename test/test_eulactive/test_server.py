#!/usr/bin/env python

# file test_eulactive/test_server.py
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

from datetime import datetime
from io import BytesIO
import unittest

from dateutil.tz import tzutc
from lxml import etree
from mock import Mock, patch
from rdflib import Graph, URIRef

from eulactive.models import DigitalObject, Datastream
from eulactive.rdfns import relsext
from eulactive.server import Repository, SearchIndex
from eulactive.util import IdentifierMismatchError
from eulactive.xml import FOXML_NS

from test_eulactive.base import Book, Volume
from testcore import main

FEDORA_ROOT = 'http://localhost:8080/fedora/'

OBJECT_PROFILE = b'''<objectProfile xmlns="http://www.fedora.info/definitions/1/0/access/" pid="demo:1">
  <objLabel>A Book</objLabel>
  <objOwnerId>owner</objOwnerId>
  <objCreateDate>2011-01-02T03:04:05.678Z</objCreateDate>
  <objLastModDate>2011-02-03T04:05:06.789Z</objLastModDate>
  <objState>A</objState>
</objectProfile>'''

OBJECT_DATASTREAMS = b'''<objectDatastreams xmlns="http://www.fedora.info/definitions/1/0/access/" pid="demo:1">
  <datastream dsid="RELS-EXT" label="External Relations" mimeType="application/rdf+xml"/>
  <datastream dsid="THUMB1" label="cover.png" mimeType="image/png"/>
</objectDatastreams>'''

NEW_PIDS = b'''<pidList xmlns="http://www.fedora.info/definitions/1/0/management/">
  <pid>test:5</pid>
</pidList>'''


def mock_response(status_code=200, content=b'', text='', url=FEDORA_ROOT):
    return Mock(status_code=status_code, content=content, text=text, url=url)


class TestRepository(unittest.TestCase):

    def setUp(self):
        self.repo = Repository(FEDORA_ROOT, 'user', 'pass')

    def test_init(self):
        self.assertEqual(FEDORA_ROOT, self.repo.fedora_root)
        self.assertIsNone(self.repo.index)
        self.assertFalse(self.repo.index_updates)
        self.assertEqual(3, self.repo.retries)
        self.assertEqual(self.repo.fedora_root, self.repo.risearch.base_url)

        repo = Repository(FEDORA_ROOT, solr_url='http://localhost:8983/solr/core',
                          retries=None)
        self.assertIsInstance(repo.index, SearchIndex)
        self.assertEqual('http://localhost:8983/solr/core/', repo.index.api.base_url)
        self.assertTrue(repo.index_updates)
        self.assertIsNone(repo.retries)

        repo = Repository(FEDORA_ROOT, solr_url='http://localhost:8983/solr/core',
                          index_updates=False)
        self.assertFalse(repo.index_updates)

    def test_mint_identifier(self):
        with patch.object(self.repo.api, 'getNextPID') as getnext:
            getnext.return_value = mock_response(content=NEW_PIDS)
            self.assertEqual('test:5', self.repo.mint_identifier())
            getnext.assert_called_with(namespace=None)

            self.repo.default_pidspace = 'test'
            self.repo.mint_identifier()
            getnext.assert_called_with(namespace='test')
            self.repo.mint_identifier('other')
            getnext.assert_called_with(namespace='other')

    def test_fetch(self):
        with patch.object(self.repo.api, 'getObjectProfile') as getprofile:
            getprofile.return_value = mock_response(content=OBJECT_PROFILE)
            profile = self.repo.fetch('demo:1')
            getprofile.assert_called_with('demo:1')
        self.assertEqual('A Book', profile.label)
        self.assertEqual('owner', profile.owner)
        self.assertEqual('A', profile.state)
        self.assertEqual(datetime(2011, 1, 2, 3, 4, 5, 678000, tzinfo=tzutc()),
                         profile.created)

    def test_fetch_datastreams(self):
        with patch.object(self.repo.api, 'listDatastreams') as listds:
            listds.return_value = mock_response(content=OBJECT_DATASTREAMS)
            manifest = self.repo.fetch_datastream_manifest('demo:1')
        self.assertEqual(['RELS-EXT', 'THUMB1'], [ds.dsid for ds in manifest])
        self.assertEqual('image/png', manifest[1].mimeType)
        self.assertEqual('cover.png', manifest[1].label)

        with patch.object(self.repo.api, 'getDatastreamDissemination') as getds:
            getds.return_value = mock_response(content=b'PNG')
            self.assertEqual(b'PNG', self.repo.fetch_datastream_content('demo:1', 'THUMB1'))
            getds.assert_called_with('demo:1', 'THUMB1')

    def test_save_new(self):
        obj = DigitalObject(self.repo, 'demo:1', create=True)
        obj.label = 'A Book'
        with patch.object(self.repo.api, 'ingest') as ingest:
            ingest.return_value = mock_response(201, text='demo:1')
            self.assertTrue(self.repo.save(obj))
            foxml = etree.fromstring(ingest.call_args[0][0])

        self.assertEqual('{%s}digitalObject' % FOXML_NS, foxml.tag)
        self.assertEqual('demo:1', foxml.get('PID'))
        self.assertEqual('1.1', foxml.get('VERSION'))
        props = dict((p.get('NAME'), p.get('VALUE'))
                     for p in foxml.iter('{%s}property' % FOXML_NS))
        self.assertEqual({'info:fedora/fedora-system:def/model#state': 'A',
                          'info:fedora/fedora-system:def/model#label': 'A Book'},
                         props)

        with patch.object(self.repo.api, 'ingest') as ingest:
            ingest.return_value = mock_response(201, text='demo:2')
            self.assertRaises(IdentifierMismatchError, self.repo.save, obj)

    def test_save_existing(self):
        obj = DigitalObject(self.repo, 'demo:1', create=True)
        obj.label = 'Old label'
        obj.new_object = False
        obj.info_modified = False
        with patch.object(self.repo.api, 'modifyObject') as modify:
            # no object property changes
            self.assertTrue(self.repo.save(obj))
            self.assertFalse(modify.called)

            modify.return_value = mock_response(200)
            obj.label = 'New label'
            self.assertTrue(self.repo.save(obj))
            modify.assert_called_with('demo:1', 'New label', None, None)

    def test_save_datastream(self):
        obj = DigitalObject(self.repo, 'demo:1', create=True)
        ds = Datastream(obj, 'TEXT', label='text', mimetype='text/plain', blob=b'hello')
        with patch.object(self.repo.api, 'addDatastream') as add:
            add.return_value = mock_response(201)
            self.assertTrue(self.repo.save_datastream(obj, ds))
            add.assert_called_with('demo:1', 'TEXT', controlGroup='M', dsLabel='text',
                                   mimeType='text/plain', dsLocation=None,
                                   content=b'hello')

        ds.new_object = False
        ds.content = BytesIO(b'file content')
        with patch.object(self.repo.api, 'modifyDatastream') as modify:
            with patch.object(self.repo.api, 'upload') as upload:
                upload.return_value = 'uploaded:123'
                modify.return_value = mock_response(200)
                self.assertTrue(self.repo.save_datastream(obj, ds))
                upload.assert_called_with(ds.content, content_type='text/plain')
                modify.assert_called_with('demo:1', 'TEXT', dsLabel='text',
                                          mimeType='text/plain',
                                          dsLocation='uploaded:123', content=None)

            modify.return_value = mock_response(500)
            ds.content = b'more'
            self.assertFalse(self.repo.save_datastream(obj, ds))

    def test_delete(self):
        obj = DigitalObject(self.repo, 'demo:1', create=True)
        with patch.object(self.repo.api, 'purgeObject') as purge:
            purge.return_value = mock_response(200)
            self.assertTrue(self.repo.delete(obj))
            purge.assert_called_with('demo:1')

    def test_inbound_relationships(self):
        graph = Graph()
        target = URIRef('info:fedora/demo:1')
        graph.add((URIRef('info:fedora/demo:3'), relsext.isPartOf, target))
        graph.add((URIRef('info:fedora/demo:2'), relsext.isPartOf, target))
        graph.add((URIRef('info:fedora/demo:4'), relsext.isMemberOf, target))
        self.repo._risearch = Mock()
        self.repo._risearch.spo_search.return_value = graph

        inbound = self.repo.inbound_relationships('info:fedora/demo:1')
        self.repo.risearch.spo_search.assert_called_with(object='info:fedora/demo:1')
        self.assertEqual({'is_part_of': ['demo:2', 'demo:3'], 'is_member_of': ['demo:4']},
                         inbound)

    def test_get_object(self):
        with patch.object(self.repo, 'mint_identifier') as mint:
            mint.return_value = 'test:9'
            obj = self.repo.get_object()
        self.assertEqual('test:9', obj.pid)
        self.assertTrue(obj.new_object)
        self.assertIsInstance(obj, DigitalObject)

        obj = self.repo.get_object('demo:1', type=Book, create=True)
        self.assertIsInstance(obj, Book)
        self.assertTrue(obj.new_object)

    def test_best_subtype(self):
        obj = DigitalObject(self.repo, 'demo:1', create=True)
        self.assertEqual(DigitalObject, self.repo.best_subtype_for_object(obj))

        obj.add_relationship('has_model', Book.model_uri())
        self.assertEqual(Book, self.repo.best_subtype_for_object(obj))
        obj.add_relationship('has_model', Volume.model_uri())
        # most specific of the matching types
        self.assertEqual(Volume, self.repo.best_subtype_for_object(obj))

        self.assertEqual(Book, self.repo.best_subtype_for_object(
            obj, models=['info:fedora/afmodel:Book']))

    def test_infer_object_subtype(self):
        obj = self.repo.infer_object_subtype(self.repo, 'demo:1', create=True)
        self.assertEqual(DigitalObject, type(obj))

        with patch.object(self.repo, 'best_subtype_for_object') as best:
            with patch.object(self.repo, 'fetch_datastream_manifest') as manifest:
                manifest.return_value = []
                best.return_value = Book
                obj = self.repo.get_object('demo:1', type=self.repo.infer_object_subtype)
        self.assertIsInstance(obj, Book)
        self.assertFalse(obj.new_object)


class TestSearchIndex(unittest.TestCase):

    def setUp(self):
        self.index = SearchIndex('http://localhost:8983/solr/core')

    def test_query(self):
        with patch.object(self.index.api, 'select') as select:
            select.return_value = [{'id': 'demo:1'}]
            self.assertEqual({'id': 'demo:1'}, self.index.query('demo:1'))
            select.assert_called_with('demo:1')
            select.return_value = []
            self.assertIsNone(self.index.query('demo:2'))

    def test_update_delete(self):
        with patch.object(self.index.api, 'update') as update:
            update.return_value = mock_response(200)
            self.assertTrue(self.index.update({'id': 'demo:1'}))
            update.assert_called_with([{'id': 'demo:1'}])

        with patch.object(self.index.api, 'delete_by_id') as delete:
            delete.return_value = mock_response(200)
            self.assertTrue(self.index.delete('demo:1'))
            delete.assert_called_with('demo:1')


if __name__ == '__main__':
    main()
