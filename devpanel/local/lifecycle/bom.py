import codecs

UTF32_LE_MARK = codecs.BOM_UTF32_LE

# Checked in this order; only the first match is stripped.
BYTE_ORDER_MARKS = (
    codecs.BOM_UTF8,       # EF BB BF
    codecs.BOM_UTF16_BE,   # FE FF
    codecs.BOM_UTF16_LE,   # FF FE
    codecs.BOM_UTF32_BE,   # 00 00 FE FF
    UTF32_LE_MARK,         # FF FE 00 00
)


def strip_bom(data: bytes) -> bytes:
    """
    Removes at most one leading byte-order mark from raw bytes.

    UTF-8 is tried first, then UTF-16 (BE/LE), then UTF-32 (BE/LE). The UTF-32 LE
    mark begins with the UTF-16 LE mark, so a UTF-16 LE match followed by two NUL
    bytes is stripped as the full 4-byte UTF-32 LE mark.

    :param data: Raw bytes, e.g. the contents of a PID file.
    :return: The bytes without the mark, or the input unchanged if none is present.
    """
    for mark in BYTE_ORDER_MARKS:
        if data.startswith(mark):
            if mark == codecs.BOM_UTF16_LE and data.startswith(UTF32_LE_MARK):
                mark = UTF32_LE_MARK
            return data[len(mark):]
    return data
