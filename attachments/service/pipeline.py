"""
Processing pipeline entrypoint.

Runs one attachment's input through classification, validation, style
rendering, metadata and hash assembly and naming. Nothing here touches the
database or storage, so a run can be repeated on the same input safely.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from attachments.service.classify import classify
from attachments.service.metadata import assemble_metadata
from attachments.service.naming import assign_file_names
from attachments.service.perceptual_hash import compute_blurhash, thumbnail_style
from attachments.service.source import read_input
from attachments.service.styles import RenderedStyle, render_styles

STATE_CREATED = 'created'
STATE_CLASSIFIED = 'classified'
STATE_VALIDATED = 'validated'
STATE_STYLING = 'styling'
STATE_COMPLETE = 'complete'
STATE_FAILED = 'failed'

TRANSITIONS = {
    STATE_CREATED: STATE_CLASSIFIED,
    STATE_CLASSIFIED: STATE_VALIDATED,
    STATE_VALIDATED: STATE_STYLING,
    STATE_STYLING: STATE_COMPLETE,
}


@dataclass
class ProcessedMedia:
    """Complete, immutable-by-convention output of one pipeline run"""
    media_type: str
    content_type: str
    styles: List[RenderedStyle] = field(default_factory=list)
    meta: dict = field(default_factory=dict)
    blurhash: Optional[str] = None

    def style(self, name):
        for style in self.styles:
            if style.name == name:
                return style
        return None

    @property
    def style_names(self):
        return [style.name for style in self.styles]


class MediaProcessor:
    """
    Processes one attachment input.

    Instances are cheap and hold the state of a single run; share the codec
    and validator between them, not the processor.
    """

    def __init__(self, codec, validator, workers=2, logger=None):
        self.codec = codec
        self.validator = validator
        self.workers = workers
        self.logger = logger
        self.state = STATE_CREATED

    def log(self, message):
        if self.logger:
            self.logger(message)

    def advance(self, state):
        if TRANSITIONS.get(self.state) != state:
            raise RuntimeError(f'Invalid transition {self.state} -> {state}')
        self.log(f'State: {self.state} -> {state}')
        self.state = state

    def process(self, raw, filename=None, content_type=None, focus=None):
        """
        Run the whole pipeline.

        Args:
            raw: Anything read_input() accepts
            filename: Original upload filename (discarded, never reused)
            content_type: Declared content type (advisory only)
            focus: Parsed focal point dict, if any

        Returns:
            ProcessedMedia

        Raises:
            ValidationError: Missing, unsupported or oversized input
            CodecError: Any codec failure, including timeouts
        """
        if self.state != STATE_CREATED:
            raise RuntimeError('A MediaProcessor runs once; create a new one')

        try:
            return self._process(raw, filename, content_type, focus)
        except Exception as e:
            self.log(f'State: {self.state} -> {STATE_FAILED} ({e})')
            self.state = STATE_FAILED
            raise

    def _process(self, raw, filename, content_type, focus):
        media_input = read_input(raw, filename=filename, content_type=content_type)

        classification = classify(media_input.data, media_input.declared_type)
        self.advance(STATE_CLASSIFIED)
        self.log(
            f'Classified {media_input.size} bytes as {classification.media_type}'
            f' ({classification.content_type or "unrecognized"})'
        )

        self.validator.validate(media_input, classification)
        self.advance(STATE_VALIDATED)

        self.advance(STATE_STYLING)
        source_probe = None
        if classification.is_provisional:
            source_probe = self.codec.probe(media_input.data, classification.content_type)
            classification = classification.settle(source_probe)
            self.log(
                f'Probed streams settle the container as {classification.media_type}'
                f' ({classification.content_type})'
            )

        styles = render_styles(
            classification.media_type,
            media_input.data,
            classification.content_type,
            self.codec,
            workers=self.workers,
            logger=self.logger,
            source_probe=source_probe,
        )
        for style in styles:
            self.validator.validate_output(classification.media_type, style.name, style.size)

        thumbnail = thumbnail_style(styles)
        background = None
        blurhash = None
        if thumbnail is not None:
            background = self.codec.dominant_color(thumbnail.data)
            blurhash = compute_blurhash(thumbnail.data)
            self.log(f'Thumbnail {thumbnail.name}: background {background}, blurhash {blurhash}')

        meta = assemble_metadata(styles, background=background, focus=focus)
        assign_file_names(styles, original_filename=media_input.filename)

        self.advance(STATE_COMPLETE)
        return ProcessedMedia(
            media_type=classification.media_type,
            content_type=classification.content_type,
            styles=styles,
            meta=meta,
            blurhash=blurhash,
        )


def process_media(raw, codec, validator, filename=None, content_type=None, focus=None,
                  workers=2, logger=None):
    """Convenience wrapper running a fresh MediaProcessor"""
    processor = MediaProcessor(codec, validator, workers=workers, logger=logger)
    return processor.process(raw, filename=filename, content_type=content_type, focus=focus)
