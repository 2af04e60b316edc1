# tests/alerting/test_audio.py

import asyncio

from alerting.audio import AudioController


def test_second_play_is_a_no_op(player):
    """Two play requests in a row leave exactly one active cue."""

    async def scenario():
        audio = AudioController(player)
        first = await audio.play_cue(10_000)
        second = await audio.play_cue(10_000)
        playing = audio.is_playing
        await audio.stop_cue()
        return first, second, playing

    first, second, playing = asyncio.run(scenario())

    assert (first, second, playing) == (True, False, True)
    assert player.plays == 1
    assert player.stops == 1


def test_cue_stops_itself_after_duration(player):
    async def scenario():
        audio = AudioController(player)
        await audio.play_cue(20)
        await asyncio.sleep(0.1)
        return audio.is_playing

    assert asyncio.run(scenario()) is False
    assert player.stops == 1


def test_stop_cue_is_idempotent(player):
    async def scenario():
        audio = AudioController(player)
        await audio.stop_cue()
        await audio.play_cue(10_000)
        await audio.stop_cue()
        await audio.stop_cue()
        return audio.is_playing

    assert asyncio.run(scenario()) is False
    assert player.plays == 1
    assert player.stops == 1


def test_stale_timer_does_not_stop_new_cue(player):
    """stop → play restarts cleanly; the first cue's timer must not cut the second one short."""

    async def scenario():
        audio = AudioController(player)
        await audio.play_cue(50)
        await audio.stop_cue()
        await audio.play_cue(10_000)
        await asyncio.sleep(0.15)
        still_playing = audio.is_playing
        await audio.stop_cue()
        return still_playing

    assert asyncio.run(scenario()) is True
    assert player.plays == 2
    assert player.stops == 2


def test_player_failure_returns_to_idle():
    class BrokenPlayer:
        async def play(self):
            raise RuntimeError("no audio device")

        async def stop(self):
            pass

    async def scenario():
        audio = AudioController(BrokenPlayer())
        started = await audio.play_cue(1000)
        return started, audio.is_playing

    assert asyncio.run(scenario()) == (False, False)
