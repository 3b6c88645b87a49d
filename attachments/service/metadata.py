"""
Metadata assembly.

Builds the metadata document stored with an attachment: one entry per style
plus the global color and focus entries.
"""


def style_metadata(style):
    """
    Describe one rendered style.

    Fields without a value (no duration for a still, no dimensions for
    audio) are left out rather than set to a placeholder.
    """
    entry = {}
    if style.width and style.height:
        entry['width'] = style.width
        entry['height'] = style.height
        entry['size'] = f'{style.width}x{style.height}'
        entry['aspect'] = style.aspect
    if style.duration is not None:
        entry['duration'] = style.duration
    if style.frame_rate:
        entry['frame_rate'] = style.frame_rate
    return entry


def parse_focus(value):
    """
    Parse a focal point given as 'x,y' or a pair of numbers.

    Both coordinates must lie within [-1, 1].

    Returns:
        dict | None: {'x': float, 'y': float}

    Raises:
        ValueError: If the value is malformed or out of range
    """
    if value is None or value == '':
        return None
    if isinstance(value, str):
        parts = value.split(',')
    else:
        parts = list(value)
    if len(parts) != 2:
        raise ValueError(f'Focus must have two coordinates, got {value!r}')

    x, y = (float(part) for part in parts)
    if not (-1.0 <= x <= 1.0 and -1.0 <= y <= 1.0):
        raise ValueError(f'Focus coordinates must be within [-1, 1], got {value!r}')
    return {'x': x, 'y': y}


def assemble_metadata(styles, background=None, focus=None):
    """
    Assemble the metadata document.

    Args:
        styles: Iterable of RenderedStyle, in pipeline order
        background: Dominant color of the thumbnail ('#rrggbb'), if any
        focus: Parsed focal point, if any

    Returns:
        dict: {'original': {...}, 'small': {...}, 'colors': {...}, 'focus': {...}}
    """
    meta = {}
    for style in styles:
        meta[style.name] = style_metadata(style)
    if background:
        meta['colors'] = {'background': background}
    if focus:
        meta['focus'] = focus
    return meta
