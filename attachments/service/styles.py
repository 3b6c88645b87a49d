"""
Style pipeline.

One table, keyed by classified type, lists the styles to render and how.
Styles of one attachment are rendered concurrently and joined: either every
required style is produced or the first failure is raised.
"""
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Optional

from attachments.service.codec import fit_pixels, fit_within
from attachments.service.constants import (
    BROWSER_IMAGE_FORMATS,
    EXTENSIONS,
    IMAGE_SMALL_PIXELS,
    NORMALIZED_IMAGE_TYPE,
    STYLE_ORIGINAL,
    STYLE_SMALL,
    TARGET_CONTENT_TYPES,
    TARGET_MP3,
    TARGET_MP4,
    THUMBNAIL_CONTENT_TYPE,
    THUMBNAIL_MAX_SIZE,
    TYPE_AUDIO,
    TYPE_GIFV,
    TYPE_IMAGE,
    TYPE_VIDEO,
)
from attachments.service.errors import CodecError


@dataclass(frozen=True)
class StyleSpec:
    """How to render one named style"""
    name: str
    action: str
    target: Optional[str] = None
    pixels: Optional[int] = None
    max_size: Optional[int] = None
    optional: bool = False


PIPELINES = {
    TYPE_IMAGE: (
        StyleSpec(STYLE_ORIGINAL, 'reencode'),
        StyleSpec(STYLE_SMALL, 'shrink', pixels=IMAGE_SMALL_PIXELS, max_size=THUMBNAIL_MAX_SIZE),
    ),
    TYPE_GIFV: (
        StyleSpec(STYLE_ORIGINAL, 'transcode', target=TARGET_MP4),
        StyleSpec(STYLE_SMALL, 'frame', max_size=THUMBNAIL_MAX_SIZE),
    ),
    TYPE_VIDEO: (
        StyleSpec(STYLE_ORIGINAL, 'transcode', target=TARGET_MP4),
        StyleSpec(STYLE_SMALL, 'frame', max_size=THUMBNAIL_MAX_SIZE),
    ),
    TYPE_AUDIO: (
        StyleSpec(STYLE_ORIGINAL, 'transcode', target=TARGET_MP3),
        StyleSpec(STYLE_SMALL, 'cover_art', max_size=THUMBNAIL_MAX_SIZE, optional=True),
    ),
}


@dataclass
class RenderedStyle:
    """One produced derivative with its probed measurements"""
    name: str
    data: bytes = field(repr=False)
    content_type: str
    width: Optional[int] = None
    height: Optional[int] = None
    duration: Optional[float] = None
    frame_rate: Optional[str] = None
    file_name: Optional[str] = None

    @property
    def extension(self):
        return EXTENSIONS[self.content_type]

    @property
    def size(self):
        return len(self.data)

    @property
    def aspect(self):
        if not self.width or not self.height:
            return None
        return round(self.width / self.height, 1)

    @property
    def is_raster(self):
        return self.content_type.startswith('image/')


@dataclass
class StyleContext:
    """Source blob and measurements shared by every style of one attachment"""
    media_type: str
    data: bytes = field(repr=False)
    content_type: str
    codec: object
    source_probe: object = None


def output_image_type(content_type):
    """Browser-displayable stills keep their format, the rest become JPEG"""
    if content_type in BROWSER_IMAGE_FORMATS:
        return content_type
    return NORMALIZED_IMAGE_TYPE


def render_reencode(spec, ctx):
    content_type = output_image_type(ctx.content_type)
    data = ctx.codec.reencode_image(ctx.data, BROWSER_IMAGE_FORMATS[content_type])
    return data, content_type


def render_shrink(spec, ctx):
    content_type = output_image_type(ctx.content_type)
    probe = ctx.source_probe
    width, height = fit_pixels(probe.width, probe.height, spec.pixels)
    max_width, max_height = fit_within(width, height, spec.max_size, spec.max_size)
    data = ctx.codec.resize(ctx.data, max_width, max_height, BROWSER_IMAGE_FORMATS[content_type])
    return data, content_type


def render_transcode(spec, ctx):
    data = ctx.codec.transcode(
        ctx.data,
        spec.target,
        ctx.media_type,
        source_probe=ctx.source_probe,
        source_type=ctx.content_type,
    )
    return data, TARGET_CONTENT_TYPES[spec.target]


def render_frame(spec, ctx):
    frame = ctx.codec.extract_frame(ctx.data, ctx.media_type)
    data = ctx.codec.resize(frame, spec.max_size, spec.max_size, 'PNG')
    return data, THUMBNAIL_CONTENT_TYPE


def render_cover_art(spec, ctx):
    art = ctx.codec.extract_embedded_image(ctx.data, ctx.source_probe)
    if art is None:
        return None
    data = ctx.codec.resize(art, spec.max_size, spec.max_size, 'PNG')
    return data, THUMBNAIL_CONTENT_TYPE


RENDERERS = {
    'reencode': render_reencode,
    'shrink': render_shrink,
    'transcode': render_transcode,
    'frame': render_frame,
    'cover_art': render_cover_art,
}


def render_style(spec, ctx, logger=None):
    """
    Render and measure one style.

    Args:
        spec: StyleSpec
        ctx: StyleContext

    Returns:
        RenderedStyle | None: None only for optional styles with nothing to render

    Raises:
        CodecError: If rendering fails or the output does not measure up
    """
    def log(message):
        if logger:
            logger(message)

    produced = RENDERERS[spec.action](spec, ctx)
    if produced is None:
        if spec.optional:
            log(f'Style {spec.name}: nothing to render, skipped')
            return None
        raise CodecError('produced no output', operation=spec.name)

    data, content_type = produced

    # Measure what was produced, not what the source claimed
    probe = ctx.codec.probe(data, content_type)
    is_raster = content_type.startswith('image/')
    if (is_raster or content_type.startswith('video/')) and not probe.has_dimensions:
        raise CodecError('output has no dimensions', operation=spec.name)
    if is_raster and probe.animated:
        raise CodecError('still output is animated', operation=spec.name)

    rendered = RenderedStyle(
        name=spec.name,
        data=data,
        content_type=content_type,
        width=probe.width,
        height=probe.height,
        duration=probe.duration,
        frame_rate=probe.frame_rate,
    )
    log(
        f'Style {spec.name}: {content_type}, {rendered.size} bytes'
        + (f', {rendered.width}x{rendered.height}' if rendered.width else '')
        + (f', {rendered.duration:.3f}s' if rendered.duration is not None else '')
    )
    return rendered


def check_source(media_type, probe):
    """
    Check that a measured source has what its type requires.

    Raises:
        CodecError: If the source lacks the streams its type requires
    """
    if media_type in (TYPE_IMAGE, TYPE_GIFV) and not probe.has_dimensions:
        raise CodecError('source has no dimensions', operation='probe')
    if media_type == TYPE_VIDEO and not probe.has_video:
        raise CodecError('source has no video stream', operation='probe')
    if media_type == TYPE_AUDIO and not probe.has_audio:
        raise CodecError('source has no audio stream', operation='probe')


def render_styles(media_type, data, content_type, codec, workers=2, logger=None, source_probe=None):
    """
    Render every style defined for a classified type.

    Styles are independent, so they run in a thread pool. Results come back
    in table order once all of them finished; the first failure cancels
    siblings that have not started and is re-raised.

    Args:
        media_type: Classified type
        data: Source bytes
        content_type: Sniffed source content type
        codec: Codec adapter
        workers: Thread pool size
        logger: Optional callable(str) for logging
        source_probe: ProbeResult of the source when already measured

    Returns:
        list[RenderedStyle]

    Raises:
        CodecError
    """
    specs = PIPELINES.get(media_type)
    if not specs:
        raise CodecError(f'no pipeline for {media_type!r}', operation='styles')

    if source_probe is None:
        source_probe = codec.probe(data, content_type)
    check_source(media_type, source_probe)

    ctx = StyleContext(
        media_type=media_type,
        data=data,
        content_type=content_type,
        codec=codec,
        source_probe=source_probe,
    )

    with ThreadPoolExecutor(
        max_workers=max(1, min(workers, len(specs))),
        thread_name_prefix='mediakit-style',
    ) as executor:
        futures = [executor.submit(render_style, spec, ctx, logger) for spec in specs]
        done, pending = wait(futures, return_when=FIRST_EXCEPTION)

        failed = [f for f in futures if f in done and f.exception() is not None]
        if failed:
            for future in pending:
                future.cancel()
            raise failed[0].exception()

    return [rendered for rendered in (f.result() for f in futures) if rendered is not None]
