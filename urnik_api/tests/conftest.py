import sys
import os

# Add project root to sys.path to allow imports like 'from urnik_api...'
# This assumes pytest is run from the project root directory
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..'))
if project_root not in sys.path:
    sys.path.insert(0, project_root)
    print(f"Added project root to sys.path: {project_root}")
import pytest
import pytest_asyncio
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI

from urnik_api.main import app as main_app


@pytest.fixture(scope="session")
def anyio_backend():
    """Use asyncio backend for pytest-asyncio."""
    return "asyncio"


# A trimmed-down class page in the shape the school publishes
SAMPLE_TIMETABLE_HTML = """
<html><body>
<center><font size="7" color="#0000FF">RAI 2.l</font></center>
<table border="3" cellspacing="1">
<tr>
  <td rowspan="2"><font size="4"><b>Ponedeljek 6.10.</b></font></td>
  <td colspan="4" rowspan="2">&nbsp;</td>
  <td colspan="2" bgcolor="#FFFF80"><table>
    <tr><td><font size="2">Uhan</font></td><td><font size="2">Skupina 2</font></td></tr>
    <tr><td><font size="3"><b>RSR lv</b></font></td><td><font size="2">253</font></td></tr>
  </table></td>
  <td colspan="2" bgcolor="#80FF80"><table>
    <tr><td><font size="2">Balantič</font></td></tr>
    <tr><td><font size="3"><b>EPP</b></font></td><td><font size="2">504</font></td></tr>
  </table></td>
  <td colspan="25" rowspan="2">&nbsp;</td>
</tr>
<tr>
  <td colspan="2" bgcolor="#FFFF80"><table>
    <tr><td><font size="2">Dečman</font></td><td><font size="2">Skupina 1</font></td></tr>
    <tr><td><font size="3"><b>RSR lv</b></font></td><td><font size="2">500</font></td></tr>
  </table></td>
</tr>
<tr>
  <td><font size="4"><b>Torek 7.10.</b></font></td>
  <td colspan="32"><font size="3">Pred začetkom šol.leta</font></td>
</tr>
</table>
</body></html>
"""


@pytest.fixture
def sample_timetable_html() -> str:
    return SAMPLE_TIMETABLE_HTML


@pytest_asyncio.fixture(scope="function")
async def test_app() -> AsyncGenerator[FastAPI, None]:
    """
    Provides the FastAPI app with its lifespan (cache and shared httpx client)
    running for the duration of one test.
    """
    async with main_app.router.lifespan_context(main_app):
        yield main_app


@pytest_asyncio.fixture(scope="function")
async def async_client(test_app: FastAPI) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Provides an asynchronous test client bound to the app."""
    transport = httpx.ASGITransport(app=test_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
