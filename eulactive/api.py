# file eulactive/api.py
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

from io import BytesIO
import json
import logging
import time
from urllib.parse import urljoin

import requests
from requests_toolbelt import MultipartEncoder, user_agent

from eulactive import __version__ as eulactive_version
from eulactive.util import RequestFailed, PermissionDenied, parse_rdf, \
    force_bytes

logger = logging.getLogger(__name__)


class HTTP_API_Base(object):

    def __init__(self, base_url, username=None, password=None, retries=None):
        # standardize url format; ensure we have a trailing slash
        if not base_url.endswith('/'):
            base_url = base_url + '/'

        self.session = requests.Session()
        # NOTE: only headers common to *all* requests belong on the session
        # (i.e., do NOT include auth information here)
        self.session.headers.update({
            'User-Agent': user_agent('eulactive', eulactive_version),
        })
        # no retries is requests current default behavior, so only
        # customize if a value is set
        if retries is not None:
            adapter = requests.adapters.HTTPAdapter(max_retries=retries)
            self.session.mount('http://', adapter)
            self.session.mount('https://', adapter)

        self.base_url = base_url
        self.username = username
        self.password = password
        self.request_options = {}
        if self.username is not None:
            # store basic auth option to pass when making requests
            self.request_options['auth'] = (self.username, self.password)

    def absurl(self, rel_url):
        return urljoin(self.base_url, rel_url)

    def prep_url(self, url):
        return self.absurl(url)

    # thinnest possible wrappers around requests calls
    # - add auth, make urls absolute

    def _make_request(self, reqmeth, url, *args, **kwargs):
        # copy base request options and update with any keyword args
        rqst_options = self.request_options.copy()
        rqst_options.update(kwargs)
        start = time.time()
        response = reqmeth(self.prep_url(url), *args, **rqst_options)
        total_time = time.time() - start
        logger.debug('%s %s=>%d: %f sec', reqmeth.__name__.upper(), url,
                     response.status_code, total_time)

        if response.status_code >= requests.codes.bad:  # 400 or worse
            # separate out 401 and 403 (permission errors) to enable
            # special handling in client code.
            if response.status_code in (requests.codes.unauthorized,
                                        requests.codes.forbidden):
                raise PermissionDenied(response)
            raise RequestFailed(response)
        return response

    def get(self, *args, **kwargs):
        return self._make_request(self.session.get, *args, **kwargs)

    def put(self, *args, **kwargs):
        return self._make_request(self.session.put, *args, **kwargs)

    def post(self, *args, **kwargs):
        return self._make_request(self.session.post, *args, **kwargs)

    def delete(self, *args, **kwargs):
        return self._make_request(self.session.delete, *args, **kwargs)


class REST_API(HTTP_API_Base):
    """Python object for accessing
    `Fedora's REST API <https://wiki.duraspace.org/display/FEDORA38/REST+API>`_.

    Methods return an HTTP :class:`requests.models.Response`, which
    provides access to status code and headers as well as content.
    Responses with XML content can be loaded using models in
    :mod:`eulactive.xml`.
    """

    # always return xml response instead of html version
    format_xml = {'format': 'xml'}

    def getDatastreamDissemination(self, pid, dsID, stream=False):
        """Get the content of a single datastream on a Fedora object.

        :param pid: object pid
        :param dsID: datastream id
        :param stream: return a streaming response (default: False)
        :rtype: :class:`requests.models.Response`
        """
        # /objects/{pid}/datastreams/{dsID}/content
        url = 'objects/%(pid)s/datastreams/%(dsid)s/content' % \
            {'pid': pid, 'dsid': dsID}
        return self.get(url, stream=stream)

    def getObjectProfile(self, pid):
        """Get top-level information about a single Fedora object.

        :param pid: object pid
        :rtype: :class:`requests.models.Response`
        """
        # /objects/{pid} ? [format]
        url = 'objects/%(pid)s' % {'pid': pid}
        return self.get(url, params=self.format_xml)

    def listDatastreams(self, pid):
        """
        Get a list of all datastreams for a specified object.

        :param pid: string object pid
        :rtype: :class:`requests.models.Response`
        """
        # /objects/{pid}/datastreams ? [format]
        return self.get('objects/%(pid)s/datastreams' % {'pid': pid},
                        params=self.format_xml)

    def _datastream_args(self, dsLabel=None, mimeType=None, logMessage=None,
                         controlGroup=None, dsLocation=None, versionable=None,
                         dsState=None):
        http_args = {}
        if dsLabel:
            http_args['dsLabel'] = dsLabel
        if mimeType:
            http_args['mimeType'] = mimeType
        if logMessage:
            http_args['logMessage'] = logMessage
        if controlGroup:
            http_args['controlGroup'] = controlGroup
        if dsLocation:
            http_args['dsLocation'] = dsLocation
        if versionable is not None:
            http_args['versionable'] = versionable
        if dsState:
            http_args['dsState'] = dsState
        return http_args

    def addDatastream(self, pid, dsID, dsLabel=None, mimeType=None, logMessage=None,
                      controlGroup=None, dsLocation=None, versionable=None,
                      dsState=None, content=None):
        '''Add a new datastream to an existing object.  On success,
        the return response should have a status of 201 Created;
        if there is an error, the response body includes the error message.

        :param pid: object pid
        :param dsID: id for the new datastream
        :param dsLabel: label for the new datastream (optional)
        :param mimeType: mimetype for the new datastream (optional)
        :param logMessage: log message for the object history (optional)
        :param controlGroup: control group for the new datastream (optional)
        :param dsLocation: URL where the content should be ingested from
        :param versionable: configure datastream versioning (optional)
        :param dsState: datastream state (optional)
        :param content: datastream content, as a file-like object or
            characterdata (optional)
        :rtype: :class:`requests.models.Response`
        '''
        # objects/{pid}/datastreams/NEWDS? [opts]
        http_args = self._datastream_args(dsLabel, mimeType, logMessage,
                                          controlGroup, dsLocation,
                                          versionable, dsState)
        extra_args = {}
        if content:
            if hasattr(content, 'read'):
                extra_args['files'] = {'file': content}
            else:
                extra_args['data'] = force_bytes(content)

        url = 'objects/%s/datastreams/%s' % (pid, dsID)
        return self.post(url, params=http_args, **extra_args)

    def modifyDatastream(self, pid, dsID, dsLabel=None, mimeType=None, logMessage=None,
                         dsLocation=None, versionable=None, dsState=None,
                         content=None):
        '''Modify an existing datastream, similar to :meth:`addDatastream`.
        If content is not specified, datastream metadata will be updated
        without modifying the content.

        :rtype: :class:`requests.models.Response`
        '''
        # /objects/{pid}/datastreams/{dsID} ? [dsLocation] [dsLabel] [versionable] [dsState] [mimeType] [logMessage]
        http_args = self._datastream_args(dsLabel, mimeType, logMessage,
                                          None, dsLocation, versionable,
                                          dsState)
        content_args = {}
        if content:
            # requests accepts either a string or a file-like object as data
            if not hasattr(content, 'read'):
                content = force_bytes(content)
            content_args['data'] = content

        url = 'objects/%s/datastreams/%s' % (pid, dsID)
        return self.put(url, params=http_args, **content_args)

    def getNextPID(self, numPIDs=None, namespace=None):
        """
        Request the next available pid(s) from Fedora.

        :param numPIDs: (optional) get the specified number of pids;
            by default, returns 1
        :param namespace: (optional) get the next pid in the specified
            pid namespace; otherwise, Fedora will return the next pid
            in the configured default namespace.
        :rtype: :class:`requests.models.Response`
        """
        http_args = {'format': 'xml'}
        if numPIDs:
            http_args['numPIDs'] = numPIDs
        if namespace:
            http_args['namespace'] = namespace

        return self.post('objects/nextPID', params=http_args)

    def ingest(self, text, logMessage=None):
        """Ingest a new object into Fedora.  Response should have a status
        of 201 Created on success, and the content of the response will be
        the newly created pid.

        :param text: full text content of the object to be ingested
        :param logMessage: optional log message
        :rtype: :class:`requests.models.Response`
        """
        http_args = {}
        if logMessage:
            http_args['logMessage'] = logMessage

        headers = {'Content-Type': 'text/xml'}
        return self.post('objects/new', data=text, params=http_args,
                         headers=headers)

    def modifyObject(self, pid, label, ownerId, state, logMessage=None):
        '''Modify object properties.  Returned response should have
        a status of 200 on success.

        :rtype: :class:`requests.models.Response`
        '''
        # /objects/{pid} ? [label] [ownerId] [state] [logMessage]
        http_args = {'label': label,
                     'ownerId': ownerId,
                     'state': state}
        if logMessage is not None:
            http_args['logMessage'] = logMessage
        url = 'objects/%(pid)s' % {'pid': pid}
        return self.put(url, params=http_args)

    def purgeObject(self, pid, logMessage=None):
        """Purge an object from Fedora.  Returned response should have a
        status of 200 on success; response content is a timestamp.

        :param pid: pid of the object to be purged
        :param logMessage: optional log message
        :rtype: :class:`requests.models.Response`
        """
        http_args = {}
        if logMessage:
            http_args['logMessage'] = logMessage

        url = 'objects/%(pid)s' % {'pid': pid}
        return self.delete(url, params=http_args)

    def upload(self, data, content_type=None):
        '''
        Upload a multi-part file for content to ingest.  Returns a
        temporary upload id that can be used as a datastream location.

        :param data: content string or file-like object to be uploaded
        :param content_type: optional content type of the data
        :returns: upload id on success
        '''
        # fedora only expects content uploaded as multipart file
        if not hasattr(data, 'read'):
            data = BytesIO(force_bytes(data))

        # multipart encoder avoids reading large files into memory
        menc = MultipartEncoder(fields={'file': ('file', data, content_type)})
        headers = {'Content-Type': menc.content_type}

        response = self.post('upload', data=menc, headers=headers)
        if response.status_code == requests.codes.accepted:
            return response.text.strip()


class ApiFacade(REST_API):
    """Access to the Fedora :class:`REST_API`."""


class ResourceIndex(HTTP_API_Base):
    "Python object for accessing Fedora's Resource Index."

    RISEARCH_FLUSH_ON_QUERY = False
    """Specify whether or not RI search queries should specify flush=true to obtain
    the most recent results.  If flush is specified to the query method, that
    takes precedence."""

    def find_statements(self, query, language='spo', flush=None, limit=None):
        """
        Run a triples query (SPO by default) against the Fedora Resource
        Index and return the results.

        :param query: query as a string
        :param language: query language to use; defaults to 'spo'
        :param flush: flush results to get recent changes; defaults to
            :attr:`RISEARCH_FLUSH_ON_QUERY`
        :rtype: :class:`rdflib.Graph`
        """
        http_args = {
            'type': 'triples',
            'lang': language,
            'query': query,
            'format': 'N-Triples',
        }
        if limit is not None:
            http_args['limit'] = limit
        return self._query(http_args, flush)

    def _query(self, http_args, flush=None):
        if flush is None:
            flush = self.RISEARCH_FLUSH_ON_QUERY
        http_args['flush'] = 'true' if flush else 'false'

        logger.debug('risearch query type=%(type)s language=%(lang)s format=%(format)s flush=%(flush)s\n%(query)s',
                     http_args)

        response = self.get('risearch', params=http_args)
        return parse_rdf(response.content, response.url, format='nt')

    def spo_search(self, subject=None, predicate=None, object=None):
        """
        Create and run a subject-predicate-object (SPO) search.  Any search terms
        that are not specified will be replaced as a wildcard in the query.

        :rtype: :class:`rdflib.Graph`
        """
        spo_query = '%s %s %s' % \
            (self.spoencode(subject), self.spoencode(predicate), self.spoencode(object))
        return self.find_statements(spo_query)

    def spoencode(self, val):
        """
        Encode search terms for an SPO query.

        :param val: string to be encoded
        :rtype: string
        """
        if val is None:
            return '*'
        elif "'" in val:
            return val
        else:
            return '<%s>' % (val,)


class SolrAPI(HTTP_API_Base):
    """Minimal JSON client for a Solr core: fetch a single document by id,
    add or replace documents, and delete by id.  Updates are committed
    immediately."""

    def select(self, pid):
        '''Query the index for the document with the given id.

        :rtype: list of documents (dictionaries)
        '''
        http_args = {'q': 'id:"%s"' % pid, 'wt': 'json'}
        response = self.get('select', params=http_args)
        return response.json()['response']['docs']

    def update(self, docs):
        '''Add or replace documents in the index.

        :param docs: list of documents (dictionaries)
        :rtype: :class:`requests.models.Response`
        '''
        return self._post_update(list(docs))

    def delete_by_id(self, pid):
        ':rtype: :class:`requests.models.Response`'
        return self._post_update({'delete': {'id': pid}})

    def _post_update(self, body):
        headers = {'Content-Type': 'application/json'}
        return self.post('update', params={'commit': 'true', 'wt': 'json'},
                         data=json.dumps(body, default=str), headers=headers)
