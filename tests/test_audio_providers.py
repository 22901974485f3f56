import os
import shutil
import tempfile
import unittest

import numpy as np
import soundfile as sf

from piano_coach.audio.pitch import PitchDetector
from piano_coach.audio.reference import ReferenceTone
from piano_coach.services.audio_providers import ArrayAudioSource, WavFileAudioSource

SAMPLE_RATE = 44100


class TestWavFileAudioSource(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.path = os.path.join(self.temp_dir, "a4.wav")
        tone = ReferenceTone(SAMPLE_RATE).generate(440.0, 0.5)
        sf.write(self.path, np.column_stack([tone, tone]), SAMPLE_RATE)

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def test_reads_stereo_file_as_mono(self):
        source = WavFileAudioSource(self.path)
        self.assertEqual(source.sample_rate, SAMPLE_RATE)
        self.assertAlmostEqual(source.duration, 0.5, places=3)

        buffer = np.zeros(4096, dtype=np.float32)
        self.assertEqual(source.read_samples(buffer), 4096)
        estimate = PitchDetector(SAMPLE_RATE).detect(buffer)
        self.assertAlmostEqual(estimate.frequency, 440.0, delta=1.0)

    def test_read_until_end(self):
        source = WavFileAudioSource(self.path)
        buffer = np.zeros(10000, dtype=np.float32)
        total = 0
        while True:
            n = source.read_samples(buffer)
            if n == 0:
                break
            total += n
        self.assertEqual(total, int(SAMPLE_RATE * 0.5))
        source.rewind()
        self.assertEqual(source.read_samples(buffer), 10000)

    def test_frames(self):
        source = WavFileAudioSource(self.path)
        frames = list(source.frames(4096, hop_size=2048))
        self.assertEqual(len(frames), (22050 - 4096) // 2048 + 1)
        self.assertTrue(all(len(f) == 4096 for f in frames))

    def test_gain(self):
        quiet = WavFileAudioSource(self.path, gain=0.5)
        loud = WavFileAudioSource(self.path)
        a = np.zeros(1000, dtype=np.float32)
        b = np.zeros(1000, dtype=np.float32)
        quiet.read_samples(a)
        loud.read_samples(b)
        np.testing.assert_allclose(a, b * 0.5, atol=1e-6)

    def test_missing_file(self):
        with self.assertRaises(Exception):
            WavFileAudioSource(os.path.join(self.temp_dir, "missing.wav"))


class TestArrayAudioSource(unittest.TestCase):
    def test_feeds_one_chunk_per_read(self):
        source = ArrayAudioSource(np.arange(10, dtype=np.float32), 1000, chunk_size=4)
        buffer = np.zeros(8, dtype=np.float32)
        self.assertEqual(source.read_samples(buffer), 4)
        self.assertEqual(source.read_samples(buffer), 8)
        np.testing.assert_array_equal(buffer, np.arange(8))
        self.assertEqual(source.read_samples(buffer), 8)
        np.testing.assert_array_equal(buffer, np.arange(2, 10))
        # Exhausted: no fresh data
        self.assertEqual(source.read_samples(buffer), 0)

    def test_loop(self):
        source = ArrayAudioSource(np.ones(4, dtype=np.float32), 1000, chunk_size=4, loop=True)
        buffer = np.zeros(4, dtype=np.float32)
        for _ in range(3):
            self.assertEqual(source.read_samples(buffer), 4)


class TestReferenceTone(unittest.TestCase):
    def test_tone(self):
        tone = ReferenceTone(SAMPLE_RATE).generate(440.0, 1.0, amplitude=0.5)
        self.assertEqual(len(tone), SAMPLE_RATE)
        self.assertEqual(tone.dtype, np.float32)
        self.assertLessEqual(np.max(np.abs(tone)), 0.5 + 1e-6)
        # Faded in and out
        self.assertEqual(tone[0], 0.0)
        self.assertAlmostEqual(float(tone[-1]), 0.0, places=6)


if __name__ == "__main__":
    unittest.main()
