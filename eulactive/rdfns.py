# file eulactive/rdfns.py
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


'''
Predefined RDF namespaces and predicate names used in ``RELS-EXT``
relationships.

Predicates can be referred to by :class:`rdflib.term.URIRef`, by their
ontology name (``isPartOf``) or by the equivalent snake-case name
(``is_part_of``); :func:`predicate_uri` resolves any of these, and
:func:`predicate_name` maps a URI back to its snake-case name.

Example usage::

  from eulactive.rdfns import relsext, predicate_uri

  obj.add_relationship(relsext.isPartOf, 'demo:1')
  obj.add_relationship('is_part_of', 'demo:1')
  assert predicate_uri('is_part_of') == relsext.isPartOf

'''

import re

from rdflib import URIRef
from rdflib.namespace import ClosedNamespace

# ids copied from http://www.fedora.info/definitions/1/0/fedora-relsext-ontology.rdfs
fedora_rels = [
    'fedoraRelationship',
    'isPartOf',
    'hasPart',
    'isConstituentOf',
    'hasConstituent',
    'isMemberOf',
    'hasMember',
    'isSubsetOf',
    'hasSubset',
    'isMemberOfCollection',
    'hasCollectionMember',
    'isDerivationOf',
    'hasDerivation',
    'isDependentOf',
    'hasDependent',
    'isDescriptionOf',
    'HasDescription',
    'isMetadataFor',
    'HasMetadata',
    'isAnnotationOf',
    'HasAnnotation',
    'hasEquivalent',
]


relsext = ClosedNamespace(URIRef('info:fedora/fedora-system:def/relations-external#'),
                          fedora_rels)
''':class:`rdflib.namespace.ClosedNamespace` for the `Fedora external
relations ontology
<http://www.fedora.info/definitions/1/0/fedora-relsext-ontology.rdfs>`_.
'''

model = ClosedNamespace(URIRef('info:fedora/fedora-system:def/model#'), [
    'hasModel',
])
''':class:`rdflib.namespace.ClosedNamespace` for the Fedora model
namespace (currently only includes ``hasModel``).'''


MODEL_URI_PREFIX = 'info:fedora/afmodel:'
'prefix for the model uri asserted with ``has_model`` on save'


def snake_case(name):
    '''Convert an ontology name such as ``isMemberOfCollection`` or
    ``HasMetadata`` to ``is_member_of_collection`` / ``has_metadata``.'''
    return re.sub('([a-z0-9])([A-Z])', r'\1_\2', name).lower()


PREDICATES = dict((snake_case(rel), getattr(relsext, rel)) for rel in fedora_rels)
PREDICATES['has_model'] = model.hasModel
'snake-case predicate name -> :class:`rdflib.term.URIRef`'

_NAMES = dict((uri, name) for name, uri in PREDICATES.items())


def predicate_uri(predicate):
    '''Resolve a predicate given as a :class:`~rdflib.term.URIRef`, a
    full uri string, an ontology name or a snake-case name.

    :raises KeyError: if a short name is not a known predicate
    :rtype: :class:`rdflib.term.URIRef`
    '''
    if isinstance(predicate, URIRef):
        return predicate
    predicate = str(predicate)
    if ':' in predicate:
        return URIRef(predicate)
    name = snake_case(predicate)
    if name not in PREDICATES:
        raise KeyError('Unknown relationship predicate: %s' % predicate)
    return PREDICATES[name]


def predicate_name(uri):
    '''Short snake-case name for a predicate uri; unknown predicates are
    returned as the full uri string.'''
    return _NAMES.get(URIRef(uri), str(uri))
