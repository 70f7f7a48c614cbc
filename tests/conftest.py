from collections.abc import Generator
from pathlib import Path

import pytest

from casepulse.config import Settings
from casepulse.database import build_session_factory
from casepulse.pipeline import PipelineRunner
from casepulse.publish import build_publisher


SAMPLE_CSV = """Nº;Data comunicação;Estado;Ok/NO;Fornecedor;Motivo
1;25/12/2025;Aberto;;Acme;Produto danificado
2;5/20/2025;Fechado;OK;Acme;Atraso na entrega
3;3/4/2025;Fechado;NOK;Beta;
4;;Aberto;;Gama;Sem data
5;10/01/2026;Resolvido;;-;Sem resposta
"""


@pytest.fixture()
def temp_workspace(tmp_path: Path) -> Path:
    (tmp_path / "data").mkdir(parents=True, exist_ok=True)
    (tmp_path / "outputs").mkdir(parents=True, exist_ok=True)
    return tmp_path


@pytest.fixture()
def source_file(temp_workspace: Path) -> Path:
    return temp_workspace / "data" / "export.csv"


@pytest.fixture()
def test_settings(temp_workspace: Path, source_file: Path) -> Settings:
    return Settings(
        app_name="casepulse",
        database_url=f"sqlite:///{temp_workspace / 'test.db'}",
        log_level="INFO",
        source_url="",
        source_path=str(source_file),
        source_delimiter=";",
        source_header_row=0,
        source_timeout_seconds=5,
        output_dir=str(temp_workspace / "outputs"),
        refresh_interval_seconds=300,
        scheduler_max_instances=3,
        recent_cases_limit=10,
        top_vendors_limit=5,
    )


@pytest.fixture()
def runner(test_settings: Settings) -> Generator[PipelineRunner, None, None]:
    session_factory = build_session_factory(test_settings.database_url)
    yield PipelineRunner(test_settings, session_factory, build_publisher(test_settings.output_dir))


@pytest.fixture()
def sample_csv() -> str:
    return SAMPLE_CSV
