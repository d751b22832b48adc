"""Seed the default monitored ministry feeds."""

from __future__ import annotations

import uuid

from alembic import op
import sqlalchemy as sa


revision = "20250106_0002"
down_revision = "20250106_0001"
branch_labels = None
depends_on = None


DEFAULT_FEED_SOURCES = [
    {
        "key": "fsa",
        "name": "金融庁",
        "rss_url": "https://www.fsa.go.jp/fsaNewsListAll_rss2.xml",
        "interest": "暗号資産,仮想通貨,暗号資産交換業,ブロックチェーン,Web3",
    },
    {
        "key": "meti",
        "name": "経済産業省",
        "rss_url": "https://www.meti.go.jp/ml_index_release_atom.xml",
        "interest": "補助金,助成金,支援金,給付金,事業支援",
    },
    {
        "key": "mhlw",
        "name": "厚生労働省",
        "rss_url": "https://www.mhlw.go.jp/stf/news.rdf",
        "interest": "社会保険,健康保険,厚生年金,雇用保険,労災保険,社会保障",
    },
    {
        "key": "digital",
        "name": "デジタル庁",
        "rss_url": "https://www.digital.go.jp/rss/news.xml",
        "interest": "DX,デジタルトランスフォーメーション,マイナンバー,デジタル化",
    },
    # No interest filter: every entry is relevant.
    {"key": "soumu", "name": "総務省", "rss_url": "https://www.soumu.go.jp/news.rdf", "interest": None},
    {"key": "egov", "name": "e-Gov パブコメ", "rss_url": "https://www.e-gov.go.jp/news/news.xml", "interest": None},
]

feed_sources = sa.table(
    "feed_sources",
    sa.column("id", sa.Uuid()),
    sa.column("key", sa.String()),
    sa.column("name", sa.String()),
    sa.column("rss_url", sa.Text()),
    sa.column("interest", sa.String()),
    sa.column("is_active", sa.Boolean()),
)


def upgrade() -> None:
    conn = op.get_bind()
    existing = set(conn.execute(sa.select(feed_sources.c.key)).scalars())
    rows = [
        {"id": uuid.uuid4(), "is_active": True, **source}
        for source in DEFAULT_FEED_SOURCES
        if source["key"] not in existing
    ]
    if rows:
        conn.execute(sa.insert(feed_sources), rows)


def downgrade() -> None:
    keys = [source["key"] for source in DEFAULT_FEED_SOURCES]
    op.get_bind().execute(sa.delete(feed_sources).where(feed_sources.c.key.in_(keys)))
