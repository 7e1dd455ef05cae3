"""Neo4j access for the authoritative decision graph.

Graph layout:
    (:WizardNode {id, question, description, nodeType, tags})
    (:WizardNode)-[:HAS_OPTION]->(:WizardOption {id, label, description, pros, cons, whenToUse, whenNotToUse})
    (:WizardOption)-[:LEADS_TO]->(:WizardNode)
    (:WizardNode)-[:HAS_RECIPE]->(:Recipe {title, steps, configSchema, capabilityDetails, links, skillLevel, estimatedTime})
    (:Component {id, name, category, description, tags})
    (:Component)-[:COMPATIBILITY {type, reason}]->(:Component)
    (:DataVersion {version, updatedAt})

List/dict properties are stored as JSON strings where Neo4j cannot hold them
natively (steps, configSchema, capabilityDetails) and may be either native
lists or JSON strings for the rest.
"""

import json
import logging
import os
from typing import Any, Optional

from dotenv import load_dotenv
from neo4j import GraphDatabase
from neo4j.exceptions import ServiceUnavailable, SessionExpired

from .models import (
    Component, CompatibilityRule, GraphDataset, Node, Option, Path, Recipe,
)

load_dotenv()

logger = logging.getLogger(__name__)

_JSON_LIST_FIELDS = ("tags", "pros", "cons", "links", "steps")
_JSON_DICT_FIELDS = ("configSchema", "capabilityDetails")


def _decode_json(value: Any, default: Any, field_name: str = "") -> Any:
    """Decode a JSON-string property; malformed values fall back to ``default``."""
    if value is None:
        return default
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except ValueError:
        logger.warning(f"Malformed JSON in property {field_name!r}, using empty default")
        return default


def _decode_row(row: dict) -> dict:
    decoded = dict(row)
    for key in _JSON_LIST_FIELDS:
        if key in decoded:
            decoded[key] = _decode_json(decoded[key], [], key)
    for key in _JSON_DICT_FIELDS:
        if key in decoded:
            decoded[key] = _decode_json(decoded[key], None, key)
    return {k: v for k, v in decoded.items() if v is not None}


class Neo4jConnection:
    def __init__(self):
        self.uri = os.getenv("NEO4J_URI")
        self.user = os.getenv("NEO4J_USER")
        self.password = os.getenv("NEO4J_PASSWORD")
        self.database = os.getenv("NEO4J_DATABASE", "neo4j")
        self.driver = None

    def connect(self):
        if not self.driver:
            self.driver = GraphDatabase.driver(
                self.uri,
                auth=(self.user, self.password),
                max_connection_lifetime=3600,
                max_connection_pool_size=50,
                connection_acquisition_timeout=30,
                keep_alive=True,
            )
        return self.driver

    def reconnect(self):
        """Force reconnection by closing existing driver and creating new one."""
        if self.driver:
            try:
                self.driver.close()
            except Exception as e:
                logger.warning(f"Error closing stale Neo4j driver: {e}")
            self.driver = None
        return self.connect()

    def close(self):
        if self.driver:
            self.driver.close()
            self.driver = None

    def _execute_with_retry(self, query_func, max_retries=2):
        """Execute a query function with automatic retry on connection failure."""
        last_error = None
        for attempt in range(max_retries + 1):
            try:
                return query_func()
            except (ServiceUnavailable, SessionExpired) as e:
                last_error = e
                if attempt < max_retries:
                    logger.warning(f"Neo4j connection lost ({e}), reconnecting (attempt {attempt + 1})")
                    self.reconnect()
                else:
                    raise
        raise last_error

    def _read(self, cypher: str, **params) -> list[dict]:
        def _query():
            driver = self.connect()
            with driver.session(database=self.database) as session:
                result = session.run(cypher, **params)
                return [dict(record) for record in result]
        return self._execute_with_retry(_query)

    def _rows(self, tx, cypher: str, **params) -> list[dict]:
        """Run inside ``tx`` when given, else in a session of its own."""
        if tx is None:
            return self._read(cypher, **params)
        return [dict(record) for record in tx.run(cypher, **params)]

    def verify_connection(self):
        """Verify the connection and return database info"""
        def _query():
            driver = self.connect()
            with driver.session(database=self.database) as session:
                result = session.run("RETURN 1 AS test")
                return result.single()["test"] == 1
        return self._execute_with_retry(_query)

    # =========================================================================
    # VERSION
    # =========================================================================

    def get_version(self, tx=None) -> Optional[str]:
        """Latest data version token, or None if the store has never been versioned."""
        rows = self._rows(tx, """
            MATCH (v:DataVersion)
            RETURN v.version AS version
            ORDER BY v.updatedAt DESC
            LIMIT 1
        """)
        if not rows or rows[0]["version"] is None:
            return None
        return str(rows[0]["version"])

    # =========================================================================
    # COLLECTIONS
    # =========================================================================

    def get_all_nodes(self, tx=None) -> list[Node]:
        rows = self._rows(tx, """
            MATCH (n:WizardNode)
            RETURN n.id AS id, n.question AS question, n.description AS description,
                   n.nodeType AS nodeType, n.tags AS tags
            ORDER BY n.id
        """)
        return [Node.model_validate(_decode_row(r)) for r in rows]

    def get_all_options(self, tx=None) -> list[Option]:
        rows = self._rows(tx, """
            MATCH (n:WizardNode)-[:HAS_OPTION]->(o:WizardOption)
            RETURN o.id AS id, n.id AS nodeId, o.label AS label, o.description AS description,
                   o.pros AS pros, o.cons AS cons,
                   o.whenToUse AS whenToUse, o.whenNotToUse AS whenNotToUse
            ORDER BY n.id, o.label
        """)
        return [Option.model_validate(_decode_row(r)) for r in rows]

    def get_all_paths(self, tx=None) -> list[Path]:
        rows = self._rows(tx, """
            MATCH (f:WizardNode)-[:HAS_OPTION]->(o:WizardOption)-[:LEADS_TO]->(t:WizardNode)
            RETURN f.id AS fromNodeId, o.id AS fromOptionId, t.id AS toNodeId
            ORDER BY f.id, o.id
        """)
        return [Path.model_validate(r) for r in rows]

    def get_all_recipes(self, tx=None) -> list[Recipe]:
        rows = self._rows(tx, """
            MATCH (n:WizardNode)-[:HAS_RECIPE]->(r:Recipe)
            RETURN n.id AS nodeId, r.title AS title, r.steps AS steps,
                   r.configSchema AS configSchema, r.capabilityDetails AS capabilityDetails,
                   r.links AS links, r.skillLevel AS skillLevel, r.estimatedTime AS estimatedTime
            ORDER BY n.id
        """)
        return [Recipe.model_validate(_decode_row(r)) for r in rows]

    def get_all_components(self, tx=None) -> list[Component]:
        rows = self._rows(tx, """
            MATCH (c:Component)
            RETURN c.id AS id, c.name AS name, c.category AS category,
                   c.description AS description, c.tags AS tags
            ORDER BY c.category, c.name
        """)
        return [Component.model_validate(_decode_row(r)) for r in rows]

    def get_all_compatibility_rules(self, tx=None) -> list[CompatibilityRule]:
        rows = self._rows(tx, """
            MATCH (a:Component)-[r:COMPATIBILITY]->(b:Component)
            RETURN a.id AS componentId1, b.id AS componentId2, r.type AS type, r.reason AS reason
            ORDER BY a.id, b.id
        """)
        return [CompatibilityRule.model_validate(_decode_row(r)) for r in rows]

    # =========================================================================
    # POINT LOOKUPS
    # =========================================================================

    def get_root_node(self) -> Optional[Node]:
        rows = self._read("""
            MATCH (n:WizardNode {nodeType: 'root'})
            RETURN n.id AS id, n.question AS question, n.description AS description,
                   n.nodeType AS nodeType, n.tags AS tags
            LIMIT 1
        """)
        return Node.model_validate(_decode_row(rows[0])) if rows else None

    def get_node_by_id(self, node_id: str) -> Optional[Node]:
        rows = self._read("""
            MATCH (n:WizardNode {id: $node_id})
            RETURN n.id AS id, n.question AS question, n.description AS description,
                   n.nodeType AS nodeType, n.tags AS tags
        """, node_id=node_id)
        return Node.model_validate(_decode_row(rows[0])) if rows else None

    def get_options_for_node(self, node_id: str) -> list[Option]:
        rows = self._read("""
            MATCH (n:WizardNode {id: $node_id})-[:HAS_OPTION]->(o:WizardOption)
            RETURN o.id AS id, n.id AS nodeId, o.label AS label, o.description AS description,
                   o.pros AS pros, o.cons AS cons,
                   o.whenToUse AS whenToUse, o.whenNotToUse AS whenNotToUse
            ORDER BY o.label
        """, node_id=node_id)
        return [Option.model_validate(_decode_row(r)) for r in rows]

    def get_next_node_id(self, node_id: str, option_id: str) -> Optional[str]:
        rows = self._read("""
            MATCH (:WizardNode {id: $node_id})-[:HAS_OPTION]->(:WizardOption {id: $option_id})
                  -[:LEADS_TO]->(t:WizardNode)
            RETURN t.id AS toNodeId
            LIMIT 1
        """, node_id=node_id, option_id=option_id)
        return rows[0]["toNodeId"] if rows else None

    def get_recipe_for_node(self, node_id: str) -> Optional[Recipe]:
        rows = self._read("""
            MATCH (n:WizardNode {id: $node_id})-[:HAS_RECIPE]->(r:Recipe)
            RETURN n.id AS nodeId, r.title AS title, r.steps AS steps,
                   r.configSchema AS configSchema, r.capabilityDetails AS capabilityDetails,
                   r.links AS links, r.skillLevel AS skillLevel, r.estimatedTime AS estimatedTime
            LIMIT 1
        """, node_id=node_id)
        return Recipe.model_validate(_decode_row(rows[0])) if rows else None

    # =========================================================================
    # FULL DATASET
    # =========================================================================

    def fetch_dataset(self) -> GraphDataset:
        """All collections plus the version token, for the cache synchronizer.

        Every read runs in one read transaction, so the version token and
        the rows describe the same snapshot.
        """
        def _collect(tx):
            return GraphDataset(
                version=self.get_version(tx),
                nodes=self.get_all_nodes(tx),
                options=self.get_all_options(tx),
                paths=self.get_all_paths(tx),
                recipes=self.get_all_recipes(tx),
                components=self.get_all_components(tx),
                compatibility_rules=self.get_all_compatibility_rules(tx),
            )

        def _query():
            driver = self.connect()
            with driver.session(database=self.database) as session:
                return session.execute_read(_collect)

        dataset = self._execute_with_retry(_query)
        logger.info(f"Fetched dataset version {dataset.version!r}: {dataset.counts()}")
        return dataset


db = Neo4jConnection()
