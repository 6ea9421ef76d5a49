# file eulactive/models.py
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

import hashlib
import logging
import os
import re
import warnings

from lxml import etree
from rdflib import URIRef, Graph as RdfGraph

from eulxml import xmlmap
from eulxml.xmlmap.dc import DublinCore

from eulactive.indexdata.util import solr_name, solr_value
from eulactive.rdfns import model as modelns, predicate_uri, predicate_name, \
    PREDICATES, MODEL_URI_PREFIX
from eulactive.util import parse_xml_object, parse_rdf, force_bytes, \
    force_text, generate_dsid, pids_from_uris, parse_index_date, \
    RequestFailed, UnknownGroupError, ContentMissingError, \
    ContentTypeMissingError, ContentTypeMismatchError, InvalidDsidError, \
    DatastreamTypeError, DatastreamNotFound, RegistryFrozenError, \
    NotFoundError, IdentifierMismatchError, ConsistencyWarning
from eulactive.xml import ObjectProfile

logger = logging.getLogger(__name__)


# datastream kinds
CONTENT = 'content'
METADATA = 'metadata'
RELATIONSHIP = 'relationship'

RELS_EXT_ID = 'RELS-EXT'
DC_ID = 'DC'


class Datastream(object):
    """A single datastream belonging to a :class:`DigitalObject`.

    Content for a datastream that already exists in the repository is
    only pulled when :attr:`content` is first accessed.  Setting content
    (or label or mimetype) marks the datastream as :attr:`dirty`, and
    dirty or new datastreams are written when the owning object is saved.

    Initialization parameters:
        :param obj: the :class:`DigitalObject` this datastream belongs to;
            set by :meth:`DigitalObject.add_datastream` when not known yet
        :param dsid: datastream id; generated on add when not specified
        :param label: datastream label
        :param mimetype: datastream mimetype
        :param control_group: ``M`` (managed) or ``X`` (inline xml)
        :param blob: initial content, as bytes, text or a file-like object
        :param ds_location: URI the repository should pull content from
    """
    kind = CONTENT
    default_mimetype = 'application/octet-stream'
    default_control_group = 'M'

    def __init__(self, obj=None, dsid=None, label='', mimetype=None,
                 control_group=None, blob=None, ds_location=None, **attrs):
        self.obj = obj
        self.dsid = dsid
        self._label = label or ''
        self._mimetype = mimetype or self.default_mimetype
        self.control_group = control_group or self.default_control_group
        self.ds_location = ds_location
        self.extra_attributes = attrs
        self._content = None
        self.digest = None
        self._dirty = False
        # True until the datastream is known to exist in the repository
        self.new_object = True
        if blob is not None:
            self.content = blob

    def __repr__(self):
        return '<%s %s>' % (self.__class__.__name__, self.dsid)

    def _get_dirty(self):
        return self._dirty or self._is_modified()
    def _set_dirty(self, val):
        self._dirty = val
        if not val and self._content is not None:
            self.digest = self._content_digest()
    dirty = property(_get_dirty, _set_dirty, None,
        'True when the datastream has changes that have not been saved')

    def _is_modified(self):
        return False

    def _content_digest(self):
        return None

    def _get_label(self):
        return self._label
    def _set_label(self, val):
        if val != self._label:
            self._dirty = True
        self._label = val
    label = property(_get_label, _set_label, None, 'datastream label')

    def _get_mimetype(self):
        return self._mimetype
    def _set_mimetype(self, val):
        if val != self._mimetype:
            self._dirty = True
        self._mimetype = val
    mimetype = property(_get_mimetype, _set_mimetype, None, 'datastream mimetype')

    @property
    def attributes(self):
        '''Dictionary of the datastream properties (not content).'''
        attrs = dict(self.extra_attributes)
        attrs.update({
            'dsid': self.dsid,
            'label': self.label,
            'mimetype': self.mimetype,
            'control_group': self.control_group,
        })
        if self.ds_location:
            attrs['ds_location'] = self.ds_location
        return attrs

    def merge_attributes(self, attrs):
        '''Overwrite datastream properties with any values set in
        ``attrs``, without marking the datastream as modified.'''
        if attrs.get('label') is not None:
            self._label = attrs['label']
        if attrs.get('mimetype') is not None:
            self._mimetype = attrs['mimetype']
        if attrs.get('control_group') is not None:
            self.control_group = attrs['control_group']

    def _get_content(self):
        if self._content is None:
            if self.new_object or self.obj is None:
                self._content = self._bootstrap_content()
            else:
                data = self.obj.repo.fetch_datastream_content(self.obj.pid, self.dsid)
                self._content = self._convert_content(data)
                self.digest = self._content_digest()
        return self._content
    def _set_content(self, val):
        self._content = val
        self._dirty = True
    content = property(_get_content, _set_content, None,
        '''contents of the datastream; for existing datastreams, content is
        only pulled from the repository when first requested''')

    def _convert_content(self, data):
        return data

    def _bootstrap_content(self):
        return None

    def _raw_content(self):
        # content in the form sent to the object store; unloaded content
        # of an existing datastream is not re-sent
        return self._content

    def save(self):
        '''Write this datastream to the object store.  On success, the
        datastream is no longer new or dirty.

        :rtype: boolean
        '''
        saved = self.obj.repo.save_datastream(self.obj, self)
        if saved:
            self.dirty = False
            self.new_object = False
        return saved


class MetadataDatastream(Datastream):
    """Inline XML datastream holding a set of named, typed, multi-valued
    fields, serialized as ``<fields><name>value</name>...</fields>``.

    Fields are declared with :meth:`field`, usually from an initializer
    passed to :class:`StaticDatastream`, or listed on a subclass as
    :attr:`default_fields`::

        class Properties(MetadataDatastream):
            default_fields = [('title', 'string'), ('pages', 'integer')]
    """
    kind = METADATA
    default_mimetype = 'text/xml'
    default_control_group = 'X'
    default_fields = ()

    def __init__(self, *args, **kwargs):
        self.field_types = dict(self.default_fields)
        super(MetadataDatastream, self).__init__(*args, **kwargs)

    def field(self, name, type='string'):
        'Declare a field on this datastream.'
        self.field_types[name] = type

    def _bootstrap_content(self):
        return {}

    def _set_content(self, val):
        # serialized fields (bytes, text or a file) are parsed on assignment
        if not isinstance(val, dict):
            if hasattr(val, 'read'):
                val = val.read()
            val = self._convert_content(val)
        super(MetadataDatastream, self)._set_content(val)
    content = property(Datastream._get_content, _set_content, None,
        'dictionary of field name to list of values')

    def _convert_content(self, data):
        values = {}
        root = etree.fromstring(force_bytes(data))
        for el in root:
            if isinstance(el.tag, str):
                values.setdefault(el.tag, []).append(el.text or '')
        return values

    def _raw_content(self):
        fields_el = etree.Element('fields')
        self.to_xml(fields_el)
        return etree.tostring(fields_el, encoding='UTF-8')

    @property
    def fields(self):
        '''Dictionary of field name to ``{'type': ..., 'values': [...]}``
        for every declared or stored field.'''
        result = {}
        for name, field_type in self.field_types.items():
            result[name] = {'type': field_type, 'values': self.get_values(name)}
        for name in self.content:
            if name not in result:
                result[name] = {'type': 'string', 'values': self.get_values(name)}
        return result

    def get_values(self, name, default=None):
        values = self.content.get(name)
        if not values:
            return list(default) if default is not None else []
        return list(values)

    def set_values(self, name, values):
        if isinstance(values, (str, bytes)) or not hasattr(values, '__iter__'):
            values = [values]
        self.content[name] = [force_text(v) for v in values]
        self.field_types.setdefault(name, 'string')
        self.dirty = True

    def update_attributes(self, params):
        '''Replace the values of every declared field named in ``params``;
        returns the new values, keyed by field name.'''
        result = {}
        for name, values in params.items():
            if name in self.field_types:
                self.set_values(name, values)
                result[name] = self.get_values(name)
        return result

    def update_indexed_attributes(self, params):
        '''Update individual values of declared fields.  ``params`` maps a
        field name to ``{index: value}``; index ``-1`` (or any index past
        the end) appends, and a value of None removes the value at that
        index.  Returns the resulting ``{index: value}`` per field.'''
        result = {}
        for name, changes in params.items():
            if name not in self.field_types:
                continue
            values = self.get_values(name)
            appends, removals = [], []
            for index, value in sorted(changes.items(), key=lambda i: int(i[0])):
                index = int(index)
                if value is None:
                    removals.append(index)
                elif index < 0 or index >= len(values):
                    appends.append(value)
                else:
                    values[index] = value
            for index in sorted(removals, reverse=True):
                if 0 <= index < len(values):
                    del values[index]
            values.extend(appends)
            self.set_values(name, values)
            result[name] = dict((str(i), v) for i, v in enumerate(values))
        return result

    def to_solr(self, solr_doc):
        for name, field in self.fields.items():
            if field['values']:
                key = solr_name(name, field['type'])
                solr_doc.setdefault(key, []).extend(solr_value(v) for v in field['values'])
        return solr_doc

    def from_solr(self, solr_doc):
        values = {}
        for name, field_type in self.field_types.items():
            key = solr_name(name, field_type)
            if key in solr_doc:
                values[name] = [force_text(v) for v in _as_list(solr_doc[key])]
        self._content = values
        self.dirty = False

    def to_xml(self, fields_el):
        for name, field in self.fields.items():
            for value in field['values']:
                etree.SubElement(fields_el, name).text = force_text(value)
        return fields_el


class XmlDatastream(Datastream):
    """Datastream with content loaded as an instance of a configured
    :class:`~eulxml.xmlmap.XmlObject` type.  Only the single-valued
    string fields named in :attr:`index_fields` are projected into the
    search index."""
    kind = METADATA
    default_mimetype = 'text/xml'
    default_control_group = 'X'
    objtype = xmlmap.XmlObject
    index_fields = ()

    def _bootstrap_content(self):
        return self.objtype()

    def _set_content(self, val):
        if not isinstance(val, xmlmap.XmlObject):
            if hasattr(val, 'read'):
                val = val.read()
            val = self._convert_content(val)
        super(XmlDatastream, self)._set_content(val)
    content = property(Datastream._get_content, _set_content, None,
        'datastream content as an instance of :attr:`objtype`')

    def _convert_content(self, data):
        return parse_xml_object(self.objtype, force_bytes(data), None)

    def _raw_content(self):
        return self.content.serialize()

    def _content_digest(self):
        return hashlib.sha1(force_bytes(self._content.serialize())).hexdigest()

    def _is_modified(self):
        # xml content is edited in place, so compare against the loaded copy
        return self._content is not None and \
            self._content_digest() != self.digest

    @property
    def fields(self):
        return dict((name, {'type': 'string', 'values': self.get_values(name)})
                    for name in self.index_fields)

    def get_values(self, name, default=None):
        value = getattr(self.content, name, None)
        if value:
            return [value]
        return list(default) if default is not None else []

    def update_attributes(self, params):
        result = {}
        for name, value in params.items():
            if name in self.index_fields:
                if isinstance(value, (list, tuple)):
                    value = value[-1] if value else None
                setattr(self.content, name, value)
                result[name] = self.get_values(name)
        return result

    def update_indexed_attributes(self, params):
        # single-valued fields; the last supplied value wins
        updates = {}
        for name, changes in params.items():
            if changes:
                updates[name] = [v for i, v in sorted(changes.items(), key=lambda i: int(i[0]))]
        return dict((name, dict((str(i), v) for i, v in enumerate(values)))
                    for name, values in self.update_attributes(updates).items())

    def to_solr(self, solr_doc):
        for name, field in self.fields.items():
            if field['values']:
                solr_doc.setdefault(solr_name(name, 'string'), []).extend(field['values'])
        return solr_doc

    def from_solr(self, solr_doc):
        content = self._bootstrap_content()
        for name in self.index_fields:
            values = _as_list(solr_doc.get(solr_name(name, 'string'), []))
            if values:
                setattr(content, name, force_text(values[0]))
        self._content = content
        self.dirty = False

    def to_xml(self, fields_el):
        for name, field in self.fields.items():
            for value in field['values']:
                etree.SubElement(fields_el, name).text = force_text(value)
        return fields_el


class DublinCoreDatastream(XmlDatastream):
    ':class:`XmlDatastream` for Dublin Core content.'
    objtype = DublinCore
    index_fields = ('title', 'creator', 'subject', 'description',
                    'publisher', 'date', 'type', 'format', 'identifier',
                    'language', 'rights')


def _as_list(value):
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _as_uriref(value):
    # DigitalObject, uri, or bare pid
    if hasattr(value, 'uriref'):
        return value.uriref
    if isinstance(value, URIRef):
        return value
    value = force_text(value)
    if '://' in value or value.startswith('info:'):
        return URIRef(value)
    return URIRef('info:fedora/' + value)


class Relationship(object):
    '''A single ``(subject, predicate, object)`` assertion.  Subject and
    object may be a :class:`DigitalObject`, a uri, or a pid; the
    predicate may be a uri or a short predicate name (see
    :func:`eulactive.rdfns.predicate_uri`).'''

    def __init__(self, subject, predicate, object):
        self.subject = _as_uriref(subject)
        self.predicate = predicate_uri(predicate)
        self.object = _as_uriref(object)

    @property
    def triple(self):
        return (self.subject, self.predicate, self.object)

    def __repr__(self):
        return '<Relationship %s %s %s>' % self.triple


class RelsExtDatastream(Datastream):
    """The ``RELS-EXT`` datastream, with content as an `rdflib
    <http://pypi.python.org/pypi/rdflib/>`_ RDF graph of the object's
    outbound relationships."""
    kind = RELATIONSHIP
    default_mimetype = 'application/rdf+xml'
    default_control_group = 'X'
    # prefixes for namespaces expected to be used in RELS-EXT
    default_namespaces = {
        'fedora-model': 'info:fedora/fedora-system:def/model#',
        'fedora-rels-ext': 'info:fedora/fedora-system:def/relations-external#',
    }

    def __init__(self, obj=None, dsid=RELS_EXT_ID, label='External Relations', **kwargs):
        super(RelsExtDatastream, self).__init__(obj, dsid or RELS_EXT_ID, label, **kwargs)
        self.mimetype = self.default_mimetype
        self.control_group = self.default_control_group

    def _bind_prefixes(self, graph):
        # bind prefixes so that serialized xml will be human-readable
        for prefix, namespace in self.default_namespaces.items():
            graph.bind(prefix, namespace)
        return graph

    def _bootstrap_content(self):
        return self._bind_prefixes(RdfGraph())

    def _convert_content(self, data):
        return self._bind_prefixes(parse_rdf(data, self.obj.uri, format='xml'))

    def _raw_content(self):
        return force_bytes(self.content.serialize(format='xml'))

    def add_relationship(self, relationship):
        '''Add a relationship; returns False if it was already present.'''
        if relationship.triple in self.content:
            return False
        self.content.add(relationship.triple)
        return True

    def remove_relationship(self, relationship):
        '''Remove a relationship; returns False if it was not present.'''
        if relationship.triple not in self.content:
            return False
        self.content.remove(relationship.triple)
        return True

    def relationships(self):
        '''Outbound relationships as a dictionary of short predicate name
        to a list of object uris.'''
        rels = {}
        for predicate, obj in self.content.predicate_objects(self.obj.uriref):
            rels.setdefault(predicate_name(predicate), []).append(str(obj))
        for values in rels.values():
            values.sort()
        return rels

    def to_solr(self, solr_doc):
        for name, objects in self.relationships().items():
            solr_doc.setdefault(solr_name(name, 'symbol'), []).extend(objects)
        return solr_doc

    def from_solr(self, solr_doc):
        graph = self._bootstrap_content()
        for name, predicate in PREDICATES.items():
            for value in _as_list(solr_doc.get(solr_name(name, 'symbol'), [])):
                graph.add((self.obj.uriref, predicate, _as_uriref(value)))
        self._content = graph
        self.dirty = False

    def to_xml(self, fields_el):
        for name, objects in self.relationships().items():
            for obj in objects:
                etree.SubElement(fields_el, name).text = obj
        return fields_el


### Datastream declarations

class StaticDatastream(object):
    '''Declare a datastream with a fixed id that every instance of a
    :class:`DigitalObject` class carries.  The optional initializer is
    called with each new datastream instance, e.g. to declare fields::

        def properties_fields(ds):
            ds.field('title', 'string')

        class Item(DigitalObject):
            properties = StaticDatastream('properties', MetadataDatastream,
                                          properties_fields)

    When accessed on an object, returns the datastream instance.
    '''

    def __init__(self, dsid, type=None, initializer=None):
        self.dsid = dsid
        self.type = type or Datastream
        self.initializer = initializer

    def __get__(self, obj, objtype):
        if obj is None:
            return self
        return obj.datastreams.get(self.dsid)


class NamedDatastream(object):
    '''Declare a group of datastreams whose ids follow the pattern
    ``PREFIX<n>``.  The group is named by the attribute it is assigned
    to; the prefix defaults to the upper-cased name.  When accessed on an
    object, returns the list of member datastreams::

        class Item(DigitalObject):
            thumbnail = NamedDatastream(prefix='THUMB', mimetype='image/png')

        item.add_named_datastream('thumbnail', blob=imgfile)
        item.thumbnail      # [<Datastream THUMB1>]
    '''

    def __init__(self, prefix=None, type=None, mimetype=None):
        self.name = None
        self.prefix = prefix
        self.type = type
        self.mimetype = mimetype

    def __get__(self, obj, objtype):
        if obj is None:
            return self
        return obj.named_datastream(self.name)


class DatastreamRegistry(object):
    '''Class-level table of static datastream specs and named datastream
    groups.  Built by :class:`DigitalObjectType` when a class is defined,
    inheriting the declarations of base classes, and frozen afterwards.'''

    def __init__(self, parents=()):
        self.static = {}
        self.named = {}
        self.accessors = {}
        self.frozen = False
        for parent in parents:
            self.static.update(parent.static)
            self.named.update(parent.named)
            self.accessors.update(parent.accessors)

    def _check_frozen(self, name):
        if self.frozen:
            raise RegistryFrozenError('Cannot declare datastream %s after class definition' % name)

    def declare_static_datastream(self, name, ds_type=None, initializer=None):
        self._check_frozen(name)
        ds_type = ds_type or Datastream
        if not (isinstance(ds_type, type) and issubclass(ds_type, Datastream)):
            raise DatastreamTypeError('%r is not a Datastream type' % (ds_type,))
        self.static[name] = {'type': ds_type, 'initializer': initializer}

    def declare_named_group(self, name, prefix=None, ds_type=None, mimetype=None):
        self._check_frozen(name)
        if prefix is None:
            prefix = name.upper()
        group = {'type': ds_type or Datastream, 'prefix': prefix}
        if mimetype is not None:
            group['mimetype'] = mimetype
        self.named[name] = group

        def list_members(obj):
            return obj.datastreams_by_prefix(prefix)

        def append_member(obj, **opts):
            return obj.add_named_datastream(name, **opts)

        self.accessors[name] = (list_members, append_member)

    def freeze(self):
        self.frozen = True


class DigitalObjectType(type):
    """A metaclass for :class:`DigitalObject`.

    Collects :class:`StaticDatastream` and :class:`NamedDatastream`
    declarations from parent classes and from the class itself into a
    frozen :class:`DatastreamRegistry`, and keeps a registry of defined
    classes for type inference.
    """

    _registry = {}

    def __new__(cls, name, bases, defined_attrs):
        parents = [base._datastream_registry for base in bases
                   if getattr(base, '_datastream_registry', None) is not None]
        registry = DatastreamRegistry(parents)

        for attr_name, attr_val in defined_attrs.items():
            if isinstance(attr_val, StaticDatastream):
                registry.declare_static_datastream(attr_val.dsid, attr_val.type,
                                                   attr_val.initializer)
            elif isinstance(attr_val, NamedDatastream):
                attr_val.name = attr_name
                registry.declare_named_group(attr_name, attr_val.prefix,
                                             attr_val.type, attr_val.mimetype)
        registry.freeze()

        use_attrs = defined_attrs.copy()
        use_attrs['_datastream_registry'] = registry

        super_new = super(DigitalObjectType, cls).__new__
        new_class = super_new(cls, name, bases, use_attrs)

        new_class_name = '%s.%s' % (new_class.__module__, new_class.__name__)
        DigitalObjectType._registry[new_class_name] = new_class

        return new_class

    @property
    def defined_types(self):
        return DigitalObjectType._registry.copy()


### Relationship descriptors

class Relation(object):
    '''Read-only descriptor for the pids an object points to with the
    given predicate in its ``RELS-EXT``::

        class Collection(DigitalObject):
            members = Relation('has_collection_member')
    '''

    def __init__(self, predicate):
        self.predicate = predicate_uri(predicate)

    def __get__(self, obj, objtype):
        if obj is None:
            return self
        return sorted(pids_from_uris(obj.rels_ext.content.objects(obj.uriref, self.predicate)))


class ReverseRelation(object):
    '''Read-only descriptor for the pids of objects that point to this
    object with the given predicate, as reported by the repository
    resource index.'''

    def __init__(self, predicate):
        self.predicate = predicate_uri(predicate)

    def __get__(self, obj, objtype):
        if obj is None:
            return self
        if obj.new_object:
            return []
        inbound = obj.inbound_relationships()
        return list(inbound.get(predicate_name(self.predicate), []))


def _unique(items):
    seen = set()
    return [i for i in items if not (i in seen or seen.add(i))]


class DigitalObject(object, metaclass=DigitalObjectType):
    """
    A single digital object, persisted as a repository object made up of
    datastreams and projected into a search index.

    Datastreams are declared on subclasses with :class:`StaticDatastream`
    (fixed id, present on every instance) and :class:`NamedDatastream`
    (groups of ``PREFIX<n>`` datastreams).  Relationships to other
    objects are stored in the ``RELS-EXT`` datastream (:attr:`rels_ext`).

    :param repo: :class:`eulactive.server.Repository` (or any object
        store providing the same interface)
    :param pid: object pid; when not specified, a new pid is minted and
        the object is treated as new
    :param create: True if the object does not exist in the repository yet
    :param index_updates: push changes to the search index on save and
        delete; defaults to the repository setting
    """

    default_pidspace = None
    """Namespace used when minting pids for new objects (the repository
    default is used when not set)."""

    dirty_on_noop_remove = True
    '''When True, :meth:`remove_relationship` marks ``RELS-EXT`` modified
    even if the relationship was not present.'''

    collection_members = Relation('has_collection_member')
    part_of = Relation('is_part_of')
    parts_outbound = Relation('has_part')
    parts_inbound = ReverseRelation('is_part_of')

    def __init__(self, repo, pid=None, create=False, index_updates=None):
        self.repo = repo
        self._datastreams = {}
        self._datastreams_loaded = False
        self._info = None
        self.info_modified = False
        self._create_date = None
        self._modified_date = None
        self.metadata_is_dirty = False
        self.relationships_are_dirty = False

        if pid is None:
            pid = repo.mint_identifier(namespace=self.default_pidspace)
            create = True
        elif pid.startswith('info:fedora/'):   # passed a uri
            pid = pid[len('info:fedora/'):]
        self.pid = pid
        self.new_object = bool(create)

        if index_updates is None:
            index_updates = getattr(repo, 'index_updates', False)
        self.index_updates = index_updates

        self._configure_static_datastreams()

    def __str__(self):
        if self.new_object:
            return self.pid + ' (unsaved)'
        return self.pid

    def __repr__(self):
        return '<%s %s>' % (self.__class__.__name__, str(self))

    @classmethod
    def model_uri(cls):
        'Model uri asserted with ``has_model`` when an object of this class is created.'
        return MODEL_URI_PREFIX + cls.__name__

    @property
    def uri(self):
        "URI for this object (``info:fedora/foo:###`` form of object pid)"
        return 'info:fedora/' + self.pid

    internal_uri = uri

    @property
    def uriref(self):
        "URI for this object, as an rdflib URI object"
        return URIRef(self.uri)

    # object info properties

    @property
    def info(self):
        # pull object profile information only when accessed
        if self._info is None:
            if self.new_object:
                self._info = ObjectProfile()
            else:
                self._info = self.repo.fetch(self.pid)
        return self._info

    def _get_label(self):
        return self.info.label
    def _set_label(self, val):
        # repository object label has a maximum of 255 characters
        if val is not None and len(val) > 255:
            logger.warning('Attempting to set object label for %s to a value longer than 255 character max (%d); truncating',
                           self.pid, len(val))
            val = val[0:255]
        if self.info.label != val:
            self.info_modified = True
        self.info.label = val
    label = property(_get_label, _set_label, None, "object label")

    def _get_owner(self):
        return self.info.owner
    def _set_owner(self, val):
        self.info.owner = val
        self.info_modified = True
    owner = property(_get_owner, _set_owner, None, "object owner")
    owner_id = owner

    def _get_state(self):
        return self.info.state
    def _set_state(self, val):
        self.info.state = val
        self.info_modified = True
    state = property(_get_state, _set_state, None, "object state (Active/Inactive/Deleted)")

    @property
    def create_date(self):
        'creation date set by the repository; None while the object is new'
        if self._create_date is not None:
            return self._create_date
        if self.new_object:
            return None
        return self.info.created

    @property
    def modified_date(self):
        'last modification date set by the repository; None while the object is new'
        if self._modified_date is not None:
            return self._modified_date
        if self.new_object:
            return None
        return self.info.modified

    ### Datastream collection

    @property
    def datastreams(self):
        '''Dictionary of datastream id to :class:`Datastream`.  For a new
        object, only in-memory datastreams; for an existing object, the
        in-memory datastreams, or the datastreams listed by the
        repository when nothing has been loaded yet.'''
        if not self.new_object and not self._datastreams and not self._datastreams_loaded:
            self._datastreams = self._load_datastreams()
            self._datastreams_loaded = True
        return self._datastreams

    def _load_datastreams(self):
        loaded = {}
        for entry in self.repo.fetch_datastream_manifest(self.pid):
            if entry.dsid == RELS_EXT_ID:
                ds = RelsExtDatastream(self, entry.dsid, label=entry.label)
            else:
                ds = Datastream(self, entry.dsid, label=entry.label, mimetype=entry.mimeType)
            ds.new_object = False
            loaded[entry.dsid] = ds
        return loaded

    def _configure_static_datastreams(self):
        existing = self.datastreams
        for dsid, decl in self._datastream_registry.static.items():
            ds = decl['type'](self, dsid)
            if decl['initializer'] is not None:
                decl['initializer'](ds)
                # declared defaults are not modifications
                ds._dirty = False
            if dsid in existing:
                ds.merge_attributes(existing[dsid].attributes)
            self.add_datastream(ds)

    def add_datastream(self, ds, prefix=None):
        '''Add a datastream to this object, generating a datastream id
        (``PREFIX<n>``, prefix defaults to ``DS``) if it has none.  A
        datastream replacing one that already exists in the repository
        is saved as a modification.

        :returns: the datastream id
        '''
        if not ds.dsid:
            ds.dsid = self.generate_dsid(prefix or 'DS')
        ds.obj = self
        current = self.datastreams.get(ds.dsid)
        if current is not None and not current.new_object:
            ds.new_object = False
        self.datastreams[ds.dsid] = ds
        return ds.dsid

    def generate_dsid(self, prefix='DS'):
        'Next datastream id for the given prefix, based on current datastream ids.'
        return generate_dsid(self.datastreams.keys(), prefix)

    def datastreams_by_prefix(self, prefix):
        return [self.datastreams[dsid] for dsid in self.datastream_ids_by_prefix(prefix)]

    def datastream_ids_by_prefix(self, prefix):
        pattern = re.compile('^%s\\d*$' % re.escape(prefix))
        return [dsid for dsid in self.datastreams if pattern.match(dsid)]

    def metadata_streams(self):
        return [ds for ds in self.datastreams.values() if ds.kind == METADATA]

    def file_streams(self):
        return [ds for ds in self.datastreams.values()
                if ds.kind != METADATA and ds.dsid not in (DC_ID, RELS_EXT_ID)]

    @property
    def dc(self):
        'the ``DC`` datastream, if present'
        return self.datastreams.get(DC_ID)

    @property
    def rels_ext(self):
        'the ``RELS-EXT`` datastream; created on first access if missing'
        if RELS_EXT_ID not in self.datastreams:
            self.add_datastream(RelsExtDatastream(self))
        return self.datastreams[RELS_EXT_ID]

    def add_file_datastream(self, file, label='', dsid=None, **opts):
        '''Add a managed datastream with the given file (or content).

        :returns: the datastream id
        '''
        ds = Datastream(self, dsid, label=label, control_group='M', blob=file, **opts)
        return self.add_datastream(ds)

    ### Named datastream groups

    def datastream_names(self):
        return list(self._datastream_registry.named.keys())

    def is_named_datastream(self, name):
        return name in self._datastream_registry.named

    def _named_group(self, name):
        group = self._datastream_registry.named.get(name)
        if group is None:
            raise UnknownGroupError('Named datastream %s not defined for object %s' % (name, self.pid))
        return group

    def named_datastream(self, name):
        'Member datastreams of a named group, in insertion order.'
        self._named_group(name)
        list_members, append_member = self._datastream_registry.accessors[name]
        return list_members(self)

    def named_datastream_ids(self, name):
        return [ds.dsid for ds in self.named_datastream(name)]

    def named_datastreams(self):
        return dict((name, self.named_datastream(name)) for name in self.datastream_names())

    def named_datastreams_ids(self):
        return dict((name, self.named_datastream_ids(name)) for name in self.datastream_names())

    def named_datastreams_attributes(self):
        return dict((name, dict((ds.dsid, ds.attributes) for ds in members))
                    for name, members in self.named_datastreams().items())

    def datastreams_attributes(self):
        return dict((dsid, ds.attributes) for dsid, ds in self.datastreams.items())

    def add_named_datastream(self, name, **opts):
        '''Add a datastream to a named group.  Options:

        :param blob: content (bytes, text or a file-like object); ``file``
            is accepted as an alias; required for managed datastreams
        :param content_type: mimetype (``mime_type`` and ``mimetype`` are
            accepted as aliases); defaults to the blob's ``content_type``
        :param label: datastream label; defaults to the blob's filename
        :param dsid: explicit datastream id, must match ``PREFIX<n>``
        :param control_group: defaults to ``M`` (managed)
        :param ds_location: content location for non-managed datastreams

        Raises a :class:`~eulactive.util.ValidationError` subclass, without
        modifying the object, if the request cannot be satisfied.

        :returns: the datastream id
        '''
        group = self._named_group(name)
        content_type = None
        for key in ('content_type', 'mime_type', 'mimetype'):
            value = opts.pop(key, None)
            if content_type is None:
                content_type = value
        label = opts.pop('label', None)
        dsid = opts.pop('dsid', None)
        control_group = opts.pop('control_group', 'M')
        ds_location = opts.pop('ds_location', None)
        blob = opts.pop('blob', None)
        file = opts.pop('file', None)
        if file is not None:
            blob = file

        if control_group == 'M':
            if blob is None:
                raise ContentMissingError('Managed datastream %s on %s requires a blob or file'
                                          % (name, self.pid))
            if label is None:
                label = getattr(blob, 'original_filename', None)
            if label is None and isinstance(getattr(blob, 'name', None), str):
                label = os.path.basename(blob.name)
            if content_type is None:
                content_type = getattr(blob, 'content_type', None)
            if content_type is None:
                raise ContentTypeMissingError('No content type given for datastream %s on %s'
                                              % (name, self.pid))
            if 'mimetype' in group and group['mimetype'] != content_type:
                raise ContentTypeMismatchError('Content type mismatch for datastream %s on %s. Expected: %s, Actual: %s'
                                               % (name, self.pid, group['mimetype'], content_type))
        elif label is None and ds_location:
            label = ds_location

        ds_type = group['type']
        if not (isinstance(ds_type, type) and issubclass(ds_type, Datastream)):
            raise DatastreamTypeError('Named datastream %s type %r is not a Datastream'
                                      % (name, ds_type))
        if dsid and not re.match('^%s[0-9]' % re.escape(group['prefix']), dsid):
            raise InvalidDsidError('dsid %s does not conform to pattern %s[number]'
                                   % (dsid, group['prefix']))

        ds = ds_type(self, dsid or None, label=label or '', mimetype=content_type,
                     control_group=control_group, blob=blob,
                     ds_location=ds_location, **opts)
        return self.add_datastream(ds, prefix=group['prefix'])

    def add_named_file_datastream(self, name, file, **opts):
        opts['file'] = file
        opts['control_group'] = 'M'
        return self.add_named_datastream(name, **opts)

    def update_named_datastream(self, name, **opts):
        '''Replace an existing member of a named group; ``dsid`` is required
        and must belong to the group.  Takes the same options as
        :meth:`add_named_datastream`.'''
        dsid = opts.get('dsid')
        if dsid is None:
            raise InvalidDsidError('A dsid is required to update datastream %s on %s' % (name, self.pid))
        if dsid not in self.named_datastream_ids(name):
            raise DatastreamNotFound('Datastream with name %s and dsid %s does not exist for %s'
                                     % (name, dsid, self.pid))
        return self.add_named_datastream(name, **opts)

    ### Relationships

    def add_relationship(self, predicate, target):
        '''Assert a relationship from this object to ``target`` (another
        object, a uri, or a pid).  Adding a relationship that already
        exists changes nothing.'''
        rel = Relationship(self, predicate, target)
        rels_ext = self.rels_ext
        if rels_ext.add_relationship(rel):
            self.relationships_are_dirty = True
            rels_ext.dirty = True

    def remove_relationship(self, predicate, target):
        '''Remove a relationship from this object to ``target``.

        :returns: True if a relationship was removed
        '''
        rel = Relationship(self, predicate, target)
        rels_ext = self.rels_ext
        removed = rels_ext.remove_relationship(rel)
        if removed or self.dirty_on_noop_remove:
            self.relationships_are_dirty = True
            rels_ext.dirty = True
        return removed

    def inbound_relationships(self):
        'Relationships held by other objects pointing to this one, by predicate name.'
        return self.repo.inbound_relationships(self.uri)

    def relationships(self, include_inbound=False):
        '''Outbound relationships keyed by short predicate name; with
        ``include_inbound``, adds an ``inbound`` key holding
        :meth:`inbound_relationships`.'''
        rels = self.rels_ext.relationships()
        if include_inbound:
            rels['inbound'] = self.inbound_relationships()
        return rels

    def get_models(self):
        return list(self.rels_ext.content.objects(self.uriref, modelns.hasModel))

    def parts(self):
        'pids of objects that are part of this one, pointing here or pointed at'
        return _unique(self.parts_inbound + self.parts_outbound)

    def file_objects(self):
        members = self.collection_members
        if members:
            msg = '%s has collection member assertions; use is_part_of on the member objects instead' % self.pid
            warnings.warn(msg, ConsistencyWarning)
            logger.warning(msg)
        return _unique(members + self.parts())

    def file_objects_append(self, obj):
        '''Make ``obj`` (an object or a pid) part of this object.  The
        relationship is stored on ``obj``, which must be saved separately.

        :returns: the related object
        '''
        if not isinstance(obj, DigitalObject):
            obj = self.repo.get_object(obj, type=self.repo.infer_object_subtype)
        obj.add_relationship('is_part_of', self)
        return obj

    def collection_members_append(self, obj):
        self.add_relationship('has_collection_member', obj)

    ### Persistence

    def save(self):
        """Save the object and every new or modified datastream.  New
        objects are asserted to have this class's model first.  When
        metadata or relationships were written and index updates are
        enabled, the search index is updated afterwards.

        Datastreams are saved one at a time with no rollback: if one fails,
        the repository error is raised, datastreams already saved stay
        saved, and calling :meth:`save` again resumes with the rest.
        """
        if self.new_object:
            result = self._create()
        else:
            result = self._update()
        self.new_object = False
        if self.metadata_is_dirty and self.index_updates:
            self.update_index()
        self.metadata_is_dirty = False
        return result

    def _create(self):
        self.add_relationship('has_model', self.model_uri())
        self.metadata_is_dirty = True
        return self._update()

    def _update(self):
        result = self.repo.save(self)
        self.new_object = False
        self.info_modified = False

        saved = []
        for dsid, ds in list(self._datastreams.items()):
            if not (ds.dirty or ds.new_object):
                continue
            if ds.kind in (METADATA, RELATIONSHIP):
                self.metadata_is_dirty = True
            try:
                ds_saved = ds.save()
            except RequestFailed:
                logger.error('Failed to save %s/%s; saved before failure: %s',
                             self.pid, dsid, ', '.join(saved) or 'none')
                raise
            if ds_saved:
                saved.append(dsid)
                if ds.kind == RELATIONSHIP:
                    self.relationships_are_dirty = False
            else:
                logger.error('Datastream %s/%s was not saved', self.pid, dsid)

        self.refresh()
        return result

    def refresh(self):
        '''Reload object properties and add any datastreams present in the
        repository that are not in memory.'''
        self._info = None
        for dsid, ds in self._load_datastreams().items():
            if dsid not in self._datastreams:
                self._datastreams[dsid] = ds
        self._datastreams_loaded = True

    def delete(self):
        '''Remove every inbound relationship held by other objects, then
        purge this object from the repository and the search index.
        Referring objects that cannot be updated are logged and skipped.'''
        for predicate, pids in self.inbound_relationships().items():
            for pid in pids:
                try:
                    referrer = self.repo.get_object(pid, type=self.repo.infer_object_subtype)
                    referrer.remove_relationship(predicate, self)
                    referrer.save()
                except RequestFailed as err:
                    logger.error('Failed to remove %s relationship from %s to %s: %s',
                                 predicate, pid, self.pid, err)

        result = self.repo.delete(self)
        if self.index_updates and self.repo.index is not None:
            self.repo.index.delete(self.pid)
        return result

    ### Index projection

    def fields(self):
        '''Dictionary of the fixed index fields and every metadata field,
        as ``{name: {'values': [...], 'type': ...}}``.'''
        fields = {
            'id': {'values': [self.pid]},
            'system_create_date': {'values': [self.create_date], 'type': 'date'},
            'system_modified_date': {'values': [self.modified_date], 'type': 'date'},
            'active_fedora_model': {'values': [self.__class__.__name__], 'type': 'symbol'},
        }
        for ds in self.metadata_streams():
            fields.update(ds.fields)
        return fields

    def to_xml(self, doc=None):
        '''Xml representation of the object for indexing, as an lxml
        element: ``<xml><fields>...</fields><content/></xml>``.'''
        if doc is None:
            doc = etree.fromstring('<xml><fields/><content/></xml>')
        fields_el = doc.find('fields')
        for name, value in (('id', self.pid),
                            ('system_create_date', self.create_date),
                            ('system_modified_date', self.modified_date),
                            ('active_fedora_model', self.__class__.__name__)):
            el = etree.SubElement(fields_el, name)
            if value is not None:
                el.text = force_text(solr_value(value))
        for ds in self.datastreams.values():
            if ds.kind in (METADATA, RELATIONSHIP):
                ds.to_xml(fields_el)
        return doc

    def to_solr(self, solr_doc=None, model_only=False):
        '''Index document for this object.  With ``model_only``, the
        fixed fields and relationships are left out.'''
        if solr_doc is None:
            solr_doc = {}
        if not model_only:
            solr_doc.update({
                'id': self.pid,
                solr_name('system_create', 'date'): solr_value(self.create_date),
                solr_name('system_modified', 'date'): solr_value(self.modified_date),
                solr_name('active_fedora_model', 'symbol'): self.__class__.__name__,
            })
        for ds in self.datastreams.values():
            if ds.kind == METADATA or (ds.kind == RELATIONSHIP and not model_only):
                solr_doc = ds.to_solr(solr_doc)
        return solr_doc

    def update_index(self):
        '''Send this object to the search index, using the repository
        indexer when one is configured.'''
        indexer = getattr(self.repo, 'indexer', None)
        if indexer is not None:
            return indexer.index_object(self)
        if self.repo.index is None:
            logger.warning('No search index configured; not indexing %s', self.pid)
            return None
        return self.repo.index.update(self.to_solr())

    @classmethod
    def load_from_index(cls, repo, pid, solr_doc=None):
        '''Initialize an object from its search index document, without
        requests to the object store.  Metadata and relationships are
        populated from the document.

        :raises NotFoundError: if there is no index document for the pid
        :raises IdentifierMismatchError: if the document id is not the pid
        '''
        if solr_doc is None:
            if repo.index is not None:
                solr_doc = repo.index.query(pid)
            if solr_doc is None:
                raise NotFoundError('Object %s not found in the search index' % pid)
        doc_id = solr_doc.get('id')
        if isinstance(doc_id, (list, tuple)):
            doc_id = doc_id[0] if doc_id else None
        if doc_id != pid:
            raise IdentifierMismatchError('Index document id %s does not match pid %s' % (doc_id, pid))

        obj = cls(repo, pid, create=True)
        obj.new_object = False
        obj._datastreams_loaded = True
        obj._create_date = parse_index_date(_first(solr_doc.get(solr_name('system_create', 'date'))))
        obj._modified_date = parse_index_date(_first(solr_doc.get(solr_name('system_modified', 'date'))))
        obj.rels_ext
        for ds in obj.datastreams.values():
            if ds.kind in (METADATA, RELATIONSHIP):
                ds.from_solr(solr_doc)
            ds.new_object = False
            ds.dirty = False
        return obj

    ### Metadata convenience methods

    def _select_datastreams(self, datastreams=None):
        if datastreams is None:
            return self.metadata_streams()
        if isinstance(datastreams, str):
            datastreams = [datastreams]
        return [self.datastreams[dsid] for dsid in datastreams]

    def update_attributes(self, params, datastreams=None):
        '''Set field values on every metadata datastream (or the named
        ``datastreams``) that declares them; returns results by dsid.'''
        return dict((ds.dsid, ds.update_attributes(params))
                    for ds in self._select_datastreams(datastreams))

    def update_indexed_attributes(self, params, datastreams=None):
        '''Set individual field values by index, e.g.
        ``{'title': {'0': 'first', '-1': 'appended'}}``, on every metadata
        datastream (or the named ``datastreams``); returns results by dsid.'''
        return dict((ds.dsid, ds.update_indexed_attributes(params))
                    for ds in self._select_datastreams(datastreams))

    def update_datastream_attributes(self, params):
        '''``params`` maps dsid to field values; datastreams that are not
        present are skipped.'''
        result = {}
        for dsid, ds_params in params.items():
            if dsid in self.datastreams:
                result[dsid] = self.datastreams[dsid].update_attributes(ds_params)
        return result

    def get_values_from_datastream(self, dsid, field, default=None):
        if dsid not in self.datastreams:
            return None
        return self.datastreams[dsid].get_values(field, default)


def _first(value):
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value
