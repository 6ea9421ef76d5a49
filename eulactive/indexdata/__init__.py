# file eulactive/indexdata/__init__.py
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
Helpers for projecting digital objects into a Solr index.

Field names follow the dynamic-field suffix convention of a typical
Solr schema (``title_t``, ``is_part_of_s``, ``system_create_dt``); see
:func:`eulactive.indexdata.util.solr_name`.  Index updates are sent
when :attr:`eulactive.server.Repository.index_updates` is enabled,
configured via Django settings as::

    # Index server url
    SOLR_SERVER_URL = "http://localhost:8983/solr/core/"
    # push index updates on save and delete
    ENABLE_SOLR_UPDATES = True

"""
