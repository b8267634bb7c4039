"""Tests for the live job registry."""

import asyncio

import pytest

from clipcomposer.pipeline.job_runner import RenderJobRunner
from clipcomposer.pipeline.registry import JobRegistry

from conftest import FakeRenderEngine, make_clip


@pytest.fixture
def gated_runner(tmp_path, stager, verifier, output_store, composer_config):
    def build(job_id):
        engine = FakeRenderEngine(tmp_path / job_id, gate=asyncio.Event())
        clip = make_clip("a", 25, render_src="https://cdn.test/a.mp4")
        runner = RenderJobRunner(
            job_id,
            [clip],
            stager=stager,
            engine=engine,
            verifier=verifier,
            output_store=output_store,
            config=composer_config,
        )
        return runner, engine

    return build


class TestJobRegistry:
    """Tests for JobRegistry."""

    @pytest.mark.asyncio
    async def test_finished_jobs_are_dropped(self, gated_runner):
        registry = JobRegistry()
        runner, engine = gated_runner("one")

        task = registry.start(runner)
        assert "one" in registry
        assert registry.get("one") is runner

        await asyncio.wait_for(engine.render_started.wait(), timeout=5)
        engine.gate.set()
        await task

        assert "one" not in registry
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_duplicate_job_id(self, gated_runner):
        registry = JobRegistry()
        runner, engine = gated_runner("one")
        registry.start(runner)

        with pytest.raises(ValueError):
            registry.start(gated_runner("one")[0])

        await registry.abort_all()

    @pytest.mark.asyncio
    async def test_abort_all(self, gated_runner):
        registry = JobRegistry()
        runners = [gated_runner(job_id) for job_id in ("one", "two")]
        for runner, _ in runners:
            registry.start(runner)
        for _, engine in runners:
            await asyncio.wait_for(engine.render_started.wait(), timeout=5)

        await registry.abort_all()

        assert len(registry) == 0
        for runner, _ in runners:
            assert runner.channel.history[-1].error_type == "AbortedError"
