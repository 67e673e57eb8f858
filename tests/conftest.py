"""Shared fixtures and helpers for tests."""

from collections.abc import Callable
from pathlib import Path
from textwrap import dedent

import pytest

from modelforge.config import CompilerConfig
from modelforge.core.compiler import collect_declarations
from modelforge.core.registry import Registry

_REPO_ROOT = Path(__file__).parent.parent


# ---------------------------------------------------------------------------
# Auto-marker: tag tests as "unit" or "integration" based on directory
# ---------------------------------------------------------------------------


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        test_path = Path(str(item.fspath))
        rel = test_path.relative_to(_REPO_ROOT / "tests")
        parts = rel.parts
        if parts and parts[0] == "integration":
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


# ---------------------------------------------------------------------------
# Sample model tree
# ---------------------------------------------------------------------------

SAMPLE_MODELS: dict[str, str] = {
    "api/submit_item.rs": """
        use serde::{Deserialize, Serialize};

        #[api(path = "SubmitItem")]
        pub struct SubmitItemReq {
            #[api(Required, Trim, MaxLength(100))]
            pub title: String,
            #[api(MaxLength(10))]
            pub tags: Vec<String>,
            #[api(Inject = "host")]
            pub host: String,
        }

        pub struct SubmitItemRes {
            pub id: String,
        }
    """,
    "api/feed.rs": """
        /// Feed for the signed-in user.
        #[api(Auth)]
        pub struct GetFeedReq {
            #[api(Inject = "user_id")]
            pub user_id: Option<String>,
            #[api(Default(20))]
            pub limit: i32,
        }

        pub struct GetFeedRes {
            pub items: Vec<MicroblogItem>,
        }
    """,
    "db/microblog_item.rs": """
        pub struct MicroblogItem {
            pub id: DatabaseId<String>,
            pub title: String,
            pub link: Option<String>,
            pub host: MultiTenant,
            pub status: ItemStatus,
            pub created_at: Timestamp,
        }

        pub enum ItemStatus {
            Draft,
            Published,
        }
    """,
    "db/audit_log.rs": """
        pub struct AuditLog {
            pub id: DatabaseId<i64>,
            pub message: String,
        }
    """,
    "events/item_published.rs": """
        pub struct ItemPublishedEvent {
            pub item_id: String,
        }
    """,
    "storage/preferences.rs": """
        pub struct Preferences {
            pub dark_mode: bool,
        }
    """,
}


def write_models(root: Path, files: dict[str, str]) -> Path:
    """Write ``files`` (relative path -> Rust source) below ``root``."""
    for relative, source in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(dedent(source).lstrip(), encoding="utf-8")
    return root


@pytest.fixture
def models_dir(tmp_path: Path) -> Path:
    return write_models(tmp_path / "models", SAMPLE_MODELS)


@pytest.fixture
def config(tmp_path: Path) -> CompilerConfig:
    return CompilerConfig(output_dir=tmp_path / "generated")


@pytest.fixture
def sample_registry(models_dir: Path, config: CompilerConfig) -> Registry:
    declarations, diagnostics = collect_declarations(models_dir, config)
    assert diagnostics == []
    return Registry.build(declarations)


@pytest.fixture
def make_models(tmp_path: Path) -> Callable[[dict[str, str]], Path]:
    """Factory writing an ad-hoc model tree under ``tmp_path/custom``."""

    def _make(files: dict[str, str]) -> Path:
        return write_models(tmp_path / "custom", files)

    return _make
