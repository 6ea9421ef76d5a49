# file eulactive/server.py
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

"""
:class:`eulactive.server.Repository` has the capability to
automatically use connection configuration parameters pulled from
Django settings, when available, but it can also be used without Django.

When you create an instance of :class:`~eulactive.server.Repository`,
if you do not specify connection parameters, it will attempt to
initialize the repository connection based on Django settings, using
the configuration names documented below.

Projects that use this module should include the following settings in their
``settings.py``::

    # Fedora Repository settings
    FEDORA_ROOT = 'http://fedora.host.name:8080/fedora/'
    FEDORA_USER = 'user'
    FEDORA_PASSWORD = 'password'
    FEDORA_PIDSPACE = 'changeme'
    # optional retry setting (default is 3)
    FEDORA_CONNECTION_RETRIES = None

    # Solr index settings
    SOLR_SERVER_URL = 'http://solr.host.name:8983/solr/core/'
    ENABLE_SOLR_UPDATES = True

If username and password are not specified, the Repository instance
will be initialized without credentials and access Fedora as an
anonymous user.  If pidspace is not specified, the Repository will use
the default pidspace for the configured Fedora instance.  Without a
Solr url, objects are not indexed and cannot be loaded from the index.

----
"""

import logging

from lxml import etree
from lxml.builder import ElementMaker
import requests

from eulactive.api import ApiFacade, ResourceIndex, SolrAPI
from eulactive.models import DigitalObject
from eulactive.rdfns import predicate_name
from eulactive.util import parse_xml_object, pids_from_uris, \
    IdentifierMismatchError
from eulactive.xml import ObjectProfile, ObjectDatastreams, NewPids, FOXML_NS

logger = logging.getLogger(__name__)


class SearchIndex(object):
    '''Search index access used by :class:`~eulactive.models.DigitalObject`:
    look up, add or replace, and delete a single document by pid.'''

    def __init__(self, url, username=None, password=None, retries=None):
        self.api = SolrAPI(url, username, password, retries)

    def query(self, pid):
        'Index document for the pid, or None if it is not indexed.'
        docs = self.api.select(pid)
        if docs:
            return docs[0]
        return None

    def update(self, doc):
        return self.api.update([doc]).status_code == requests.codes.ok

    def delete(self, pid):
        return self.api.delete_by_id(pid).status_code == requests.codes.ok


class Repository(object):
    """Pythonic interface to a single Fedora Commons repository instance,
    and optionally the Solr index its objects are projected into.

    Connect by passing in connection parameters or based on configuration
    in a Django settings file.  If username and password are specified,
    they will override any fedora credentials configured in Django
    settings.

    If a *retries* value is specified, this will override the default
    set in :attr:`Repository.retries` which is used to configure the
    maximum number of requests retries for connection errors.  Retries
    can also be specified via Django settings as
    **FEDORA_CONNECTION_RETRIES**.

    An *indexer* (any object with an ``index_object(obj)`` method) can be
    supplied to take over indexing from the default Solr document update.
    """

    default_object_type = DigitalObject
    "Default type to use for methods that return fedora objects - :class:`DigitalObject`"
    default_pidspace = None

    #: default number of retries to request for API connections
    retries = 3

    default_retry_option = object()
    # default retry option, so None can be recognized as an option

    index_updates = False
    "push object changes to the search index on save and delete"

    def __init__(self, root=None, username=None, password=None,
                 solr_url=None, index_updates=None, indexer=None,
                 retries=default_retry_option):

        # when initialized via django, settings should be pulled from django conf
        if root is None:
            try:
                from django.conf import settings

                root = getattr(settings, 'FEDORA_ROOT', None)
                if username is None and password is None:
                    username = getattr(settings, 'FEDORA_USER', None)
                    password = getattr(settings, 'FEDORA_PASSWORD', None)

                if hasattr(settings, 'FEDORA_PIDSPACE'):
                    self.default_pidspace = settings.FEDORA_PIDSPACE
                if hasattr(settings, 'FEDORA_CONNECTION_RETRIES'):
                    self.retries = settings.FEDORA_CONNECTION_RETRIES

                if solr_url is None:
                    solr_url = getattr(settings, 'SOLR_SERVER_URL', None)
                if index_updates is None and hasattr(settings, 'ENABLE_SOLR_UPDATES'):
                    index_updates = settings.ENABLE_SOLR_UPDATES

            except ImportError:
                pass

        # if retries is specified in init options, that should override
        # default value or django setting
        if retries is not self.default_retry_option:
            self.retries = retries

        if root is None:
            raise Exception('Could not determine Fedora root url from django settings or parameter')

        logger.debug("Connecting to fedora at %s %s", root,
                     'as %s' % username if username else '(no user credentials)')
        self.api = ApiFacade(root, username, password, self.retries)
        self.fedora_root = self.api.base_url
        self.username = username
        self.password = password
        self._risearch = None

        self.index = None
        if solr_url is not None:
            self.index = SearchIndex(solr_url, retries=self.retries)
        if index_updates is None:
            index_updates = self.index is not None or indexer is not None
        self.index_updates = index_updates
        self.indexer = indexer

    @property
    def risearch(self):
        "instance of :class:`eulactive.api.ResourceIndex`, with the same root url and credentials"
        if self._risearch is None:
            self._risearch = ResourceIndex(self.fedora_root, self.username,
                                           self.password, self.retries)
        return self._risearch

    ### object store interface

    def mint_identifier(self, namespace=None):
        '''Request the next available pid, in the specified namespace or
        the default pidspace.'''
        namespace = namespace or self.default_pidspace
        r = self.api.getNextPID(namespace=namespace)
        nextpids = parse_xml_object(NewPids, r.content, r.url)
        return nextpids.pids[0]

    def fetch(self, pid):
        ':rtype: :class:`~eulactive.xml.ObjectProfile`'
        r = self.api.getObjectProfile(pid)
        return parse_xml_object(ObjectProfile, r.content, r.url)

    def fetch_datastream_manifest(self, pid):
        ':rtype: list of :class:`~eulactive.xml.ObjectDatastream`'
        r = self.api.listDatastreams(pid)
        dsobj = parse_xml_object(ObjectDatastreams, r.content, r.url)
        return list(dsobj.datastreams)

    def fetch_datastream_content(self, pid, dsid):
        return self.api.getDatastreamDissemination(pid, dsid).content

    def _object_foxml(self, obj):
        E = ElementMaker(namespace=FOXML_NS, nsmap={'foxml': FOXML_NS})
        properties = E.objectProperties()
        for name, value in (('state', obj.state or 'A'),
                            ('label', obj.label),
                            ('ownerId', obj.owner)):
            if value:
                properties.append(E.property(
                    NAME='info:fedora/fedora-system:def/model#%s' % name,
                    VALUE=value))
        doc = E.digitalObject(properties, VERSION='1.1', PID=obj.pid)
        return etree.tostring(doc, encoding='UTF-8', xml_declaration=True)

    def save(self, obj):
        '''Ingest a new object, or write modified object properties of an
        existing one.  Datastreams are saved separately with
        :meth:`save_datastream`.

        :raises IdentifierMismatchError: if the repository ingested the
            object under a different pid
        :rtype: boolean
        '''
        if obj.new_object:
            r = self.api.ingest(self._object_foxml(obj))
            ingested_pid = r.text.strip()
            if ingested_pid != obj.pid:
                raise IdentifierMismatchError('Ingested pid %s does not match object pid %s'
                                              % (ingested_pid, obj.pid))
            return r.status_code == requests.codes.created
        if obj.info_modified:
            r = self.api.modifyObject(obj.pid, obj.label, obj.owner, obj.state)
            return r.status_code == requests.codes.ok
        return True

    def save_datastream(self, obj, ds):
        '''Add a new datastream or modify an existing one.  File-like
        content is uploaded first and passed by location.

        :rtype: boolean
        '''
        content = ds._raw_content()
        ds_location = ds.ds_location
        if content is not None and hasattr(content, 'read'):
            ds_location = self.api.upload(content, content_type=ds.mimetype)
            content = None
        args = {'dsLabel': ds.label, 'mimeType': ds.mimetype,
                'dsLocation': ds_location, 'content': content}
        if ds.new_object:
            r = self.api.addDatastream(obj.pid, ds.dsid,
                                       controlGroup=ds.control_group, **args)
            return r.status_code == requests.codes.created
        r = self.api.modifyDatastream(obj.pid, ds.dsid, **args)
        return r.status_code == requests.codes.ok

    def delete(self, obj):
        'Purge an object from the repository.'
        r = self.api.purgeObject(obj.pid)
        return r.status_code == requests.codes.ok

    def inbound_relationships(self, uri):
        '''Relationships from other objects to the object with the given
        uri, as a dictionary of short predicate name to referring pids.'''
        inbound = {}
        for subject, predicate, obj in self.risearch.spo_search(object=uri):
            pids = inbound.setdefault(predicate_name(predicate), [])
            pids.extend(pids_from_uris(subject))
        for pids in inbound.values():
            pids.sort()
        return inbound

    ### object access

    def get_object(self, pid=None, type=None, create=None):
        """
        Initialize a single object, or create a new one, with the same
        repository configuration.

        :param pid: pid of the object to request; if not specified, a new
            pid is minted when the object is created
        :param type: type of object to return; defaults to :class:`DigitalObject`
        :param create: create a new object? (if not specified, defaults
            to False when pid is specified, and True when it is not)
        :rtype: single object of the type specified
        """
        type = type or self.default_object_type
        if create is None:
            create = pid is None
        return type(self, pid, create)

    def infer_object_subtype(self, repo, pid=None, create=False, index_updates=None):
        """Construct a DigitalObject or appropriate subclass, inferring the
        appropriate subtype using :meth:`best_subtype_for_object`.  The
        signature matches the :class:`~eulactive.models.DigitalObject`
        constructor, so that this method might be passed directly to
        :meth:`get_object` as a `type`::

        >>> obj = repo.get_object(pid, type=repo.infer_object_subtype)
        """
        obj = DigitalObject(repo, pid, create, index_updates)
        if create:
            return obj
        match_type = self.best_subtype_for_object(obj)
        if match_type is DigitalObject:
            return obj
        return match_type(repo, pid, create, index_updates)

    def best_subtype_for_object(self, obj, models=None):
        """Select the :class:`~eulactive.models.DigitalObject` subclass whose
        model uri (see :meth:`~eulactive.models.DigitalObject.model_uri`)
        the object asserts with ``has_model``.

        :param obj: a :class:`~eulactive.models.DigitalObject` to inspect
        :param models: optional list of model uris, if they are known
            ahead of time, to avoid an additional look-up
        :rtype: a subclass of :class:`~eulactive.models.DigitalObject`
        """
        if models is None:
            obj_models = set(str(m) for m in obj.get_models())
        else:
            obj_models = set(models)

        matches = [obj_type for obj_type in DigitalObject.defined_types.values()
                   if obj_type.model_uri() in obj_models]
        if not matches:
            return DigitalObject

        if len(matches) > 1:
            # prefer a type that is a subclass of every other match
            for obj_type in matches:
                if all(issubclass(obj_type, other) for other in matches):
                    return obj_type
            logger.warning('%s has %d potential classes with no root subclass for the list. using the first: %r',
                           obj, len(matches), matches)
        return matches[0]
