"""
Unit tests for agentpipes.cli and agentpipes.download.
"""
from __future__ import annotations

import io

import httpx
import pytest

from agentpipes import cli
from agentpipes.core.exceptions import ClientError
from agentpipes.download import download
from fakes import run_body


# ─────────────────────────────────────────────────────────────────────────────
# 1. chat_loop
# ─────────────────────────────────────────────────────────────────────────────

class TestChatLoop:

    @pytest.mark.asyncio
    async def test_reuses_thread(self, pipe_client, service):
        service.reply("support", run_body("Hello!"), run_body("CRID is an ID."))
        stdin = io.StringIO("hi\n\nwhat is CRID?\nexit\nignored\n")
        stdout = io.StringIO()

        turns = await cli.chat_loop("support", stdin=stdin, stdout=stdout)

        assert turns == 2
        assert "Hello!\n" in stdout.getvalue()
        assert "CRID is an ID.\n" in stdout.getvalue()
        runs = service.runs_for("support")
        assert len(runs) == 2
        assert "threadId" not in runs[0]
        assert runs[1]["threadId"] == "thread-1"

    @pytest.mark.asyncio
    async def test_eof_ends_loop(self, pipe_client, service):
        turns = await cli.chat_loop("support", stdin=io.StringIO("one\n"), stdout=io.StringIO())
        assert turns == 1

    @pytest.mark.asyncio
    async def test_failed_run_does_not_end_loop(self, pipe_client, service):
        service.fail("/v1/pipes/run", status=503, message="busy")
        stdout = io.StringIO()
        turns = await cli.chat_loop("support", stdin=io.StringIO("hi\nquit\n"), stdout=stdout, prompt="")
        assert turns == 0
        assert len(service.runs_for("support")) == 1


# ─────────────────────────────────────────────────────────────────────────────
# 2. Parser and main
# ─────────────────────────────────────────────────────────────────────────────

class TestParser:

    def test_run(self):
        args = cli.build_parser().parse_args(["run", "summary", "Summarize this"])
        assert (args.command, args.pipe, args.message, args.verbose) == ("run", "summary", "Summarize this", False)

    def test_download(self):
        args = cli.build_parser().parse_args(["-v", "download", "https://x.test/a.pdf", "-o", "a.pdf"])
        assert (args.command, args.url, args.output, args.verbose) == ("download", "https://x.test/a.pdf", "a.pdf", True)

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])

    def test_missing_api_key_exits_with_error(self, monkeypatch, tmp_path):
        monkeypatch.delenv("LANGBASE_API_KEY", raising=False)
        monkeypatch.chdir(tmp_path)
        assert cli.main(["run", "summary", "hi"]) == 1


# ─────────────────────────────────────────────────────────────────────────────
# 3. download
# ─────────────────────────────────────────────────────────────────────────────

def _files(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/missing.txt":
        return httpx.Response(404)
    return httpx.Response(200, content=b"%PDF-1.7 fake")


class TestDownload:

    @pytest.mark.asyncio
    async def test_returns_bytes(self):
        body = await download("https://files.test/doc.pdf", transport=httpx.MockTransport(_files))
        assert body == b"%PDF-1.7 fake"

    @pytest.mark.asyncio
    async def test_writes_destination(self, tmp_path):
        dest = tmp_path / "nested" / "doc.pdf"
        path = await download("https://files.test/doc.pdf", dest=dest, transport=httpx.MockTransport(_files))
        assert path == dest
        assert dest.read_bytes() == b"%PDF-1.7 fake"

    @pytest.mark.asyncio
    async def test_status_error(self):
        with pytest.raises(ClientError) as exc_info:
            await download("https://files.test/missing.txt", transport=httpx.MockTransport(_files))
        assert exc_info.value.status_code == 404
        assert exc_info.value.agent_name == "download"

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ClientError, match="refused"):
            await download("https://files.test/doc.pdf", transport=httpx.MockTransport(refuse))
