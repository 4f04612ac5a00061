"""Header whitelist and symbol filter tables for binding generation.

Only headers considered stable public API are bound. Hardware context
headers (CUDA, D3D11, VAAPI, ...) and other platform specific headers are
left out because they pull in SDK headers that may not exist on the build
machine.
"""

import logging
from pathlib import Path
from typing import FrozenSet, Iterable, List, Tuple


HEADERS: Tuple[str, ...] = (
    "libavcodec/ac3_parser.h",
    "libavcodec/adts_parser.h",
    "libavcodec/avcodec.h",
    "libavcodec/avdct.h",
    "libavcodec/avfft.h",
    "libavcodec/bsf.h",
    "libavcodec/codec.h",
    "libavcodec/codec_desc.h",
    "libavcodec/codec_id.h",
    "libavcodec/codec_par.h",
    "libavcodec/defs.h",
    "libavcodec/dirac.h",
    "libavcodec/dv_profile.h",
    "libavcodec/jni.h",
    "libavcodec/mediacodec.h",
    "libavcodec/packet.h",
    "libavcodec/version.h",
    "libavcodec/version_major.h",
    "libavcodec/vorbis_parser.h",
    "libavdevice/avdevice.h",
    "libavdevice/version.h",
    "libavdevice/version_major.h",
    "libavfilter/avfilter.h",
    "libavfilter/buffersink.h",
    "libavfilter/buffersrc.h",
    "libavfilter/version.h",
    "libavfilter/version_major.h",
    "libavformat/avformat.h",
    "libavformat/avio.h",
    "libavformat/version.h",
    "libavformat/version_major.h",
    "libavutil/adler32.h",
    "libavutil/aes.h",
    "libavutil/aes_ctr.h",
    "libavutil/ambient_viewing_environment.h",
    "libavutil/attributes.h",
    "libavutil/audio_fifo.h",
    "libavutil/avassert.h",
    "libavutil/avconfig.h",
    "libavutil/avstring.h",
    "libavutil/avutil.h",
    "libavutil/base64.h",
    "libavutil/blowfish.h",
    "libavutil/bprint.h",
    "libavutil/bswap.h",
    "libavutil/buffer.h",
    "libavutil/camellia.h",
    "libavutil/cast5.h",
    "libavutil/channel_layout.h",
    "libavutil/common.h",
    "libavutil/cpu.h",
    "libavutil/crc.h",
    "libavutil/csp.h",
    "libavutil/des.h",
    "libavutil/detection_bbox.h",
    "libavutil/dict.h",
    "libavutil/display.h",
    "libavutil/dovi_meta.h",
    "libavutil/downmix_info.h",
    "libavutil/encryption_info.h",
    "libavutil/error.h",
    "libavutil/eval.h",
    "libavutil/executor.h",
    "libavutil/ffversion.h",
    "libavutil/fifo.h",
    "libavutil/file.h",
    "libavutil/film_grain_params.h",
    "libavutil/frame.h",
    "libavutil/hash.h",
    "libavutil/hdr_dynamic_metadata.h",
    "libavutil/hdr_dynamic_vivid_metadata.h",
    "libavutil/hmac.h",
    "libavutil/hwcontext.h",
    "libavutil/imgutils.h",
    "libavutil/intfloat.h",
    "libavutil/intreadwrite.h",
    "libavutil/lfg.h",
    "libavutil/log.h",
    "libavutil/lzo.h",
    "libavutil/macros.h",
    "libavutil/mastering_display_metadata.h",
    "libavutil/mathematics.h",
    "libavutil/md5.h",
    "libavutil/mem.h",
    "libavutil/motion_vector.h",
    "libavutil/murmur3.h",
    "libavutil/opt.h",
    "libavutil/parseutils.h",
    "libavutil/pixdesc.h",
    "libavutil/pixelutils.h",
    "libavutil/pixfmt.h",
    "libavutil/random_seed.h",
    "libavutil/rational.h",
    "libavutil/rc4.h",
    "libavutil/replaygain.h",
    "libavutil/ripemd.h",
    "libavutil/samplefmt.h",
    "libavutil/sha.h",
    "libavutil/sha512.h",
    "libavutil/spherical.h",
    "libavutil/stereo3d.h",
    "libavutil/tea.h",
    "libavutil/threadmessage.h",
    "libavutil/time.h",
    "libavutil/timecode.h",
    "libavutil/timestamp.h",
    "libavutil/tree.h",
    "libavutil/twofish.h",
    "libavutil/tx.h",
    "libavutil/uuid.h",
    "libavutil/version.h",
    "libavutil/video_enc_params.h",
    "libavutil/video_hint.h",
    "libavutil/xtea.h",
    "libswresample/swresample.h",
    "libswresample/version.h",
    "libswresample/version_major.h",
    "libswscale/swscale.h",
    "libswscale/version.h",
    "libswscale/version_major.h",
)

# math.h defines these both as enum constants and as macros, which makes
# them ambiguous in the generated declarations
MACRO_FILTER: FrozenSet[str] = frozenset({
    "FP_NAN",
    "FP_INFINITE",
    "FP_ZERO",
    "FP_SUBNORMAL",
    "FP_NORMAL",
})

# Types the binding must never declare
BLOCKLISTED_TYPES: FrozenSet[str] = frozenset({
    # mingw's long double wrapper cannot be expressed
    "__mingw_ldbl_type_t",
})


class HeaderWhitelist:
    """Ordered set of header paths relative to an include directory.

    Example usage:
        whitelist = HeaderWhitelist()
        headers = whitelist.existing(Path("/opt/ffmpeg/include"))
    """

    def __init__(self, headers: Iterable[str] = HEADERS):
        seen: List[str] = []
        for header in headers:
            if header not in seen:
                seen.append(header)
        self.headers: Tuple[str, ...] = tuple(seen)

    def __iter__(self):
        return iter(self.headers)

    def __len__(self) -> int:
        return len(self.headers)

    def __contains__(self, header: object) -> bool:
        return header in self.headers

    def existing(self, include_dir: Path) -> List[Path]:
        """Resolve the whitelist against ``include_dir``.

        Headers missing on disk are logged and skipped, never fatal.

        Args:
            include_dir: Directory holding libavcodec/, libavutil/, ...

        Returns:
            Header paths under ``include_dir`` in whitelist order
        """
        found = []
        for header in self.headers:
            path = include_dir.joinpath(*header.split("/"))
            if path.exists():
                found.append(path)
            else:
                logging.warning(f"Header path `{path}` not found.")
        return found
