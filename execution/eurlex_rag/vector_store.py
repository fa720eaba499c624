"""
Vector Store with PostgreSQL + pgvector

Stores EUR-Lex documents and their embedded passages and provides cosine
similarity search using PostgreSQL's pgvector extension.

Re-ingesting a document replaces its passage set inside one transaction, so
readers see either the old passages or the new ones, never a mix.
"""

import os
import json
import logging
from typing import Optional, Union
from dataclasses import dataclass, field
from contextlib import contextmanager

from .chunker import Passage
from .citation import format_citation
from .discovery import DiscoveryRecord
from .exceptions import StorageError

try:
    import psycopg2
    import psycopg2.extras
    import psycopg2.pool
except ImportError:
    psycopg2 = None  # Will be caught at connect() time

logger = logging.getLogger(__name__)

MAX_TOP_K = 50


def to_pg_vector(vector: list[float]) -> str:
    """Serialize a vector into pgvector's text input format."""
    return "[" + ",".join(repr(float(v)) for v in vector) + "]"


def similarity_from_distance(distance: float) -> float:
    """Cosine similarity from pgvector's cosine distance (<=>)."""
    return 1.0 - distance


def clamp_top_k(top_k: int) -> int:
    return max(1, min(int(top_k), MAX_TOP_K))


@dataclass
class VectorStoreConfig:
    """Configuration for vector store."""
    connection_string: Optional[str] = None
    documents_table: str = "eurlex_documents"
    passages_table: str = "document_passages"
    embedding_dimensions: int = 1536
    index_lists: int = 100  # IVFFlat index parameter
    # Connection pooling settings
    pool_min_connections: int = 1
    pool_max_connections: int = 10
    use_pooling: bool = True  # Set to False for simple single-connection mode


@dataclass
class SearchResult:
    """A retrieved passage with its similarity score."""
    document_id: str
    passage_index: int
    content: str
    score: float
    metadata: dict = field(default_factory=dict)

    @property
    def citation_tag(self) -> str:
        return format_citation(self.document_id, self.passage_index)

    def to_dict(self) -> dict:
        return {
            "document_id": self.document_id,
            "passage_index": self.passage_index,
            "content": self.content,
            "score": self.score,
            "citation_tag": self.citation_tag,
            "metadata": self.metadata,
        }


class VectorStore:
    """
    PostgreSQL vector store with pgvector.

    Features:
    - Cosine similarity search
    - Transactional per-document passage replacement
    - Batch insert with execute_values
    - Threaded connection pool for concurrent readers
    """

    def __init__(self, config: Optional[VectorStoreConfig] = None):
        """
        Initialize vector store.

        Args:
            config: Optional configuration. Uses env vars if not provided.
        """
        self.config = config or VectorStoreConfig()
        self._conn = None
        self._pool = None
        self._connection_string = (
            self.config.connection_string or
            os.getenv("DATABASE_URL") or
            os.getenv("POSTGRES_URL") or
            "postgresql://localhost:5432/eurlex_rag"
        )

    def connect(self) -> None:
        """Establish database connection (with optional pooling)."""
        if psycopg2 is None:
            raise ImportError(
                "psycopg2 not installed. Run: pip install psycopg2-binary"
            )
        from psycopg2.extras import RealDictCursor

        try:
            if self.config.use_pooling:
                self._pool = psycopg2.pool.ThreadedConnectionPool(
                    minconn=self.config.pool_min_connections,
                    maxconn=self.config.pool_max_connections,
                    dsn=self._connection_string,
                    cursor_factory=RealDictCursor,
                )
                conn = self._pool.getconn()
                try:
                    with conn.cursor() as cur:
                        cur.execute("CREATE EXTENSION IF NOT EXISTS vector")
                    conn.commit()
                finally:
                    self._pool.putconn(conn)

                logger.info(
                    f"Connection pool initialized (min={self.config.pool_min_connections}, "
                    f"max={self.config.pool_max_connections})"
                )
            else:
                self._conn = psycopg2.connect(
                    self._connection_string,
                    cursor_factory=RealDictCursor
                )
                self._conn.autocommit = False

                with self._conn.cursor() as cur:
                    cur.execute("CREATE EXTENSION IF NOT EXISTS vector")
                    self._conn.commit()

                logger.info("Connected to PostgreSQL with pgvector (single connection)")

        except psycopg2.Error as e:
            logger.error(f"Database connection failed: {e}")
            raise

    def _get_connection(self):
        """Get a database connection (from pool or single connection)."""
        if self._pool:
            return self._pool.getconn()

        if self._conn and self._conn.closed:
            logger.warning("Connection closed, reconnecting...")
            self.connect()

        return self._conn

    def _release_connection(self, conn):
        """Release a connection back to the pool (if pooling is enabled)."""
        if self._pool and conn:
            self._pool.putconn(conn)

    def _ensure_connection(self):
        """Ensure we have a connection (pool or single) and return it."""
        if not self._conn and not self._pool:
            self.connect()

        try:
            return self._get_connection()
        except (psycopg2.OperationalError, psycopg2.InterfaceError):
            logger.warning("Database error in _ensure_connection, retrying after reconnect...")
            self.connect()
            return self._get_connection()

    @contextmanager
    def get_connection(self):
        """
        Context manager for getting a database connection.

        Usage:
            with store.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute("SELECT 1")
        """
        conn = self._ensure_connection()
        try:
            yield conn
        finally:
            self._release_connection(conn)

    def _safe_rollback(self, conn) -> None:
        """Rollback a connection, ignoring errors if the connection is dead."""
        try:
            conn.rollback()
        except (psycopg2.InterfaceError, psycopg2.OperationalError):
            pass

    def _execute_with_retry(self, operation, label="db_operation"):
        """Execute a DB operation with one retry on stale connection.

        Args:
            operation: Callable(conn) that performs the DB work and returns a result.
            label: Human-readable name for logging.

        Returns:
            Whatever ``operation`` returns.
        """
        for attempt in range(2):
            conn = self._ensure_connection()
            try:
                result = operation(conn)
                self._release_connection(conn)
                return result
            except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
                self._safe_rollback(conn)
                self._release_connection(conn)
                if attempt == 0:
                    logger.warning(f"{label}: stale conn, reconnecting: {e}")
                    self.close()
                    self.connect()
                    continue
                raise
            except Exception:
                self._safe_rollback(conn)
                self._release_connection(conn)
                raise

    def close(self) -> None:
        """Close database connection(s)."""
        if self._pool:
            self._pool.closeall()
            self._pool = None
            logger.info("Connection pool closed")
        if self._conn:
            self._conn.close()
            self._conn = None

    # =========================================================================
    # Schema
    # =========================================================================

    def initialize_schema(self) -> None:
        """Create tables and indexes if they don't exist."""
        docs = self.config.documents_table
        passages = self.config.passages_table

        schema_sql = f"""
        CREATE EXTENSION IF NOT EXISTS vector;

        CREATE TABLE IF NOT EXISTS {docs} (
            document_id TEXT PRIMARY KEY,
            title TEXT,
            language VARCHAR(8),
            issued TEXT,
            source_url TEXT,
            metadata JSONB DEFAULT '{{}}',
            updated_at TIMESTAMPTZ DEFAULT NOW()
        );

        CREATE TABLE IF NOT EXISTS {passages} (
            id BIGSERIAL PRIMARY KEY,
            document_id TEXT NOT NULL REFERENCES {docs}(document_id) ON DELETE CASCADE,
            passage_index INT NOT NULL,
            content TEXT NOT NULL,
            embedding VECTOR({self.config.embedding_dimensions}) NOT NULL,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            UNIQUE (document_id, passage_index)
        );

        CREATE INDEX IF NOT EXISTS idx_passages_document
            ON {passages}(document_id);
        """

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(schema_sql)
            conn.commit()
            logger.info("Schema initialized successfully")

        self._execute_with_retry(_op, "initialize_schema")

    def create_vector_index(self) -> None:
        """Create the IVFFlat cosine index (call after inserting data)."""
        index_sql = f"""
        CREATE INDEX IF NOT EXISTS idx_passages_embedding
            ON {self.config.passages_table}
            USING ivfflat (embedding vector_cosine_ops)
            WITH (lists = {self.config.index_lists});
        """

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(index_sql)
            conn.commit()
            logger.info(f"Vector index created (ivfflat, lists={self.config.index_lists})")

        self._execute_with_retry(_op, "create_vector_index")

    # =========================================================================
    # Writes
    # =========================================================================

    def upsert_passages(
        self,
        record: Union[DiscoveryRecord, str],
        passages: list[Passage],
        embeddings: list[list[float]],
    ) -> int:
        """
        Replace a document's passages atomically.

        Upserts the document row, deletes its previous passages and inserts the
        new ones in a single transaction. On failure the transaction is rolled
        back, so the previous passage set (if any) is left intact.

        Args:
            record: DiscoveryRecord or bare document id
            passages: Passages with contiguous indices 0..n-1
            embeddings: One vector per passage

        Returns:
            Number of passages written

        Raises:
            StorageError: if the write failed and was rolled back
        """
        if isinstance(record, str):
            record = DiscoveryRecord.manual(record)
        document_id = record.document_id

        if len(passages) != len(embeddings):
            raise StorageError(
                f"Mismatch: {len(passages)} passages, {len(embeddings)} embeddings",
                document_id=document_id,
            )
        indices = [p.index for p in passages]
        if indices != list(range(len(passages))):
            raise StorageError(
                f"Passage indices for {document_id} are not contiguous from 0",
                document_id=document_id,
            )

        from psycopg2.extras import execute_values

        docs = self.config.documents_table
        table = self.config.passages_table

        document_sql = f"""
        INSERT INTO {docs} (document_id, title, language, issued, source_url, metadata, updated_at)
        VALUES (%s, %s, %s, %s, %s, %s, NOW())
        ON CONFLICT (document_id) DO UPDATE SET
            title = EXCLUDED.title,
            language = EXCLUDED.language,
            issued = EXCLUDED.issued,
            source_url = EXCLUDED.source_url,
            metadata = EXCLUDED.metadata,
            updated_at = NOW()
        """
        metadata = json.dumps({"work": record.work, "expression": record.expression})

        values = [
            (document_id, passage.index, passage.text, to_pg_vector(embedding))
            for passage, embedding in zip(passages, embeddings)
        ]

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(document_sql, (
                    document_id,
                    record.title,
                    record.language,
                    record.issued,
                    record.source_url,
                    metadata,
                ))
                cur.execute(f"DELETE FROM {table} WHERE document_id = %s", (document_id,))
                if values:
                    execute_values(
                        cur,
                        f"INSERT INTO {table} (document_id, passage_index, content, embedding) VALUES %s",
                        values,
                        template="(%s, %s, %s, %s::vector)",
                        page_size=500,
                    )
            conn.commit()
            logger.info(f"Stored {len(values)} passages for {document_id}")
            return len(values)

        try:
            return self._execute_with_retry(_op, "upsert_passages")
        except psycopg2.Error as e:
            raise StorageError(
                f"Failed to store passages for {document_id}: {e}",
                document_id=document_id,
            ) from e

    def delete_document(self, document_id: str) -> bool:
        """
        Delete a document and (by cascade) all its passages.

        Returns:
            True if a document was deleted, False if not found
        """
        docs = self.config.documents_table
        table = self.config.passages_table

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(f"DELETE FROM {table} WHERE document_id = %s", (document_id,))
                cur.execute(f"DELETE FROM {docs} WHERE document_id = %s", (document_id,))
                deleted = cur.rowcount > 0
            conn.commit()
            if deleted:
                logger.info(f"Deleted document {document_id}")
            else:
                logger.warning(f"Document {document_id} not found")
            return deleted

        return self._execute_with_retry(_op, "delete_document")

    # =========================================================================
    # Reads
    # =========================================================================

    def search(self, query_embedding: list[float], top_k: int = 5) -> list[SearchResult]:
        """
        Semantic search using cosine similarity.

        Args:
            query_embedding: Query embedding vector
            top_k: Number of results, clamped to [1, MAX_TOP_K]

        Returns:
            SearchResults ordered by descending score
        """
        limit = clamp_top_k(top_k)
        vector = to_pg_vector(query_embedding)

        sql = f"""
        SELECT
            p.document_id,
            p.passage_index,
            p.content,
            p.embedding <=> %s::vector AS distance
        FROM {self.config.passages_table} p
        ORDER BY p.embedding <=> %s::vector
        LIMIT %s
        """

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, (vector, vector, limit))
                rows = cur.fetchall()

            return [
                SearchResult(
                    document_id=row["document_id"],
                    passage_index=int(row["passage_index"]),
                    content=row["content"],
                    score=similarity_from_distance(float(row["distance"])),
                )
                for row in rows
            ]

        return self._execute_with_retry(_op, "search")

    def get_document_passages(self, document_id: str) -> list[dict]:
        """Return a document's stored passages ordered by index (without vectors)."""
        table = self.config.passages_table

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(
                    f"SELECT passage_index, content FROM {table} "
                    f"WHERE document_id = %s ORDER BY passage_index",
                    (document_id,),
                )
                return [dict(row) for row in cur.fetchall()]

        return self._execute_with_retry(_op, "get_document_passages")

    def list_documents(self, limit: Optional[int] = None) -> list[dict]:
        """List stored documents, most recently updated first."""
        sql = (
            f"SELECT document_id, title, language, source_url, updated_at "
            f"FROM {self.config.documents_table} ORDER BY updated_at DESC"
        )
        params: tuple = ()
        if limit:
            sql += " LIMIT %s"
            params = (limit,)

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, params)
                return [dict(row) for row in cur.fetchall()]

        return self._execute_with_retry(_op, "list_documents")

    def health_check(self) -> bool:
        """True if the database answers a trivial query."""
        def _op(conn):
            with conn.cursor() as cur:
                cur.execute("SELECT 1")
                cur.fetchone()
            return True

        try:
            return self._execute_with_retry(_op, "health_check")
        except psycopg2.Error as e:
            logger.warning(f"Database health check failed: {e}")
            return False
