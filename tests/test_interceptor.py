# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

import pytest

from contractwire import InterceptorChain, InterceptorContext


@pytest.fixture
def context():
    return InterceptorContext(key="@get/users", method="get", path="/users")


class TestInterceptorChain:
    @pytest.mark.asyncio
    async def test_runs_in_order(self, context):
        chain = InterceptorChain()
        chain.use(lambda ctx, value: value + ["a"])
        chain.use(lambda ctx, value: value + ["b"])
        assert await chain.run(context, []) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_none_means_unchanged(self, context):
        seen = []
        chain = InterceptorChain()
        chain.use(lambda ctx, value: seen.append(value))
        chain.use(lambda ctx, value: value * 2)
        assert await chain.run(context, 3) == 6
        assert seen == [3]

    @pytest.mark.asyncio
    async def test_async_callbacks(self, context):
        async def double(ctx, value):
            return value * 2

        chain = InterceptorChain()
        chain.use(double)
        chain.use(lambda ctx, value: value + 1)
        assert await chain.run(context, 5) == 11

    @pytest.mark.asyncio
    async def test_context_is_shared(self, context):
        contexts = []
        chain = InterceptorChain()
        chain.use(lambda ctx, value: contexts.append(ctx))
        chain.use(lambda ctx, value: contexts.append(ctx))
        await chain.run(context, None)
        assert contexts == [context, context]

    @pytest.mark.asyncio
    async def test_detach(self, context):
        chain = InterceptorChain()
        detach = chain.use(lambda ctx, value: value + 1)
        assert len(chain) == 1
        detach()
        detach()
        assert len(chain) == 0
        assert await chain.run(context, 1) == 1

    def test_detach_removes_only_its_registration(self):
        chain = InterceptorChain()

        def cb(ctx, value):
            return value

        first = chain.use(cb)
        chain.use(cb)
        first()
        first()
        assert len(chain) == 1

    @pytest.mark.asyncio
    async def test_snapshot_isolates_running_call(self, context):
        chain = InterceptorChain()
        calls = []

        def late(ctx, value):
            calls.append("late")

        def adds_another(ctx, value):
            chain.use(late)
            calls.append("first")

        chain.use(adds_another)
        await chain.run(context, None)
        assert calls == ["first"]
        await chain.run(context, None)
        assert calls[:3] == ["first", "first", "late"]

    def test_rejects_non_callable(self):
        with pytest.raises(TypeError):
            InterceptorChain().use("nope")

    def test_clear(self):
        chain = InterceptorChain()
        chain.add(lambda ctx, value: value)
        chain.clear()
        assert len(chain) == 0
        assert bool(chain) is True

    def test_context_is_frozen(self, context):
        with pytest.raises(AttributeError):
            context.key = "@post/users"
        with pytest.raises(TypeError):
            context.inputs["query"] = {}
