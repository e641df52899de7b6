import numpy as np
import pytest

from conftest import CAPTURE_FORMAT
from smartdo_voice.domain.errors import CodecError
from smartdo_voice.domain.models import AudioFormat, AudioFrame
from smartdo_voice.services import codec


class TestTransportText:

    def test_round_trip_arbitrary_bytes(self):
        raw = bytes(range(256)) * 3
        assert codec.decode(codec.encode(raw)) == raw

    def test_empty_input(self):
        assert codec.encode(b"") == ""
        assert codec.decode("") == b""

    def test_known_value(self):
        assert codec.encode(b"\x00\x80\xff\x7f") == "AID/fw=="

    @pytest.mark.parametrize("text", ["not base64!!", "AID/fw", "****"])
    def test_invalid_text_raises(self, text):
        with pytest.raises(CodecError):
            codec.decode(text)

    def test_codec_error_is_a_value_error(self):
        with pytest.raises(ValueError):
            codec.decode("@@@")


class TestPcmDecoding:

    def test_samples_are_normalized(self):
        buffer = codec.decode_audio_frame(b"\x00\x80\xff\x7f\x00\x00", 24000, 1)
        assert buffer.samples.dtype == np.float32
        assert buffer.samples.shape == (3, 1)
        assert buffer.samples[0, 0] == -1.0
        assert buffer.samples[1, 0] == pytest.approx(32767 / 32768)
        assert buffer.samples[2, 0] == 0.0
        assert np.all(buffer.samples >= -1.0)
        assert np.all(buffer.samples < 1.0)

    def test_stereo_is_deinterleaved(self):
        raw = np.array([100, -100, 200, -200], dtype="<i2").tobytes()
        buffer = codec.decode_audio_frame(raw, 24000, 2)
        assert buffer.frames == 2
        assert buffer.samples[:, 0] == pytest.approx([100 / 32768, 200 / 32768])
        assert buffer.samples[:, 1] == pytest.approx([-100 / 32768, -200 / 32768])

    def test_partial_trailing_frame_is_dropped(self):
        buffer = codec.decode_audio_frame(b"\x01\x00\x02\x00\x03", 24000, 2)
        assert buffer.frames == 1

    def test_empty_payload_gives_empty_buffer(self):
        buffer = codec.decode_audio_frame(b"", 24000, 1)
        assert buffer.is_empty
        assert buffer.duration == 0.0

    def test_duration_follows_sample_rate(self):
        buffer = codec.decode_audio_frame(b"\x00\x00" * 2400, 24000, 1)
        assert buffer.duration == pytest.approx(0.1)

    @pytest.mark.parametrize("rate, channels", [(0, 1), (24000, 0), (-1, 1)])
    def test_invalid_parameters_raise(self, rate, channels):
        with pytest.raises(ValueError):
            codec.decode_audio_frame(b"\x00\x00", rate, channels)


class TestFrameEncoding:

    def test_float_frame_scales_and_clips(self):
        frame = AudioFrame(data=np.array([0.5, -1.0, 1.0, 0.0], dtype=np.float32), format=CAPTURE_FORMAT)
        pcm = np.frombuffer(codec.encode_frame(frame), dtype="<i2")
        assert pcm.tolist() == [16384, -32768, 32767, 0]

    def test_stereo_frame_is_mixed_to_mono(self):
        fmt = AudioFormat(sample_rate=16000, channels=2, blocksize=2, dtype="float32")
        data = np.array([[0.5, 0.0], [-0.5, -0.5]], dtype=np.float32)
        pcm = np.frombuffer(codec.encode_frame(AudioFrame(data=data, format=fmt)), dtype="<i2")
        assert pcm.tolist() == [8192, -16384]

    def test_int16_frame_passes_through(self):
        fmt = AudioFormat(sample_rate=16000, channels=1, blocksize=3, dtype="int16")
        data = np.array([1, -2, 32767], dtype=np.int16)
        pcm = np.frombuffer(codec.encode_frame(AudioFrame(data=data, format=fmt)), dtype="<i2")
        assert pcm.tolist() == [1, -2, 32767]


class TestMimeRate:

    @pytest.mark.parametrize(
        "mime, rate",
        [
            ("audio/pcm;rate=24000", 24000),
            ("audio/pcm; rate=16000", 16000),
            ("audio/L16;codec=pcm;RATE=8000", 8000),
            ("audio/pcm", None),
            ("", None),
            ("audio/pcm;bitrate=128", None),
        ],
    )
    def test_rate_parameter(self, mime, rate):
        assert codec.pcm_rate(mime) == rate
