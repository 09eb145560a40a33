from domain.fulfillment.signature import compute_signature, parse_signature_header, verify_signature


SECRET = "whsec_test"
BODY = b'{"data":{"attributes":{"type":"payment.paid"}}}'


def _header(t="1716800978", te=None, li=None):
    sig = compute_signature(t, BODY, SECRET)
    return f"t={t},te={te if te is not None else sig},li={li if li is not None else sig}"


def test_parse_header_trims_and_splits_on_first_equals():
    parts = parse_signature_header(" t=1 , te=abc== ,li=x=y ,junk")
    assert parts == {"t": "1", "te": "abc==", "li": "x=y"}


def test_valid_test_and_live_signatures():
    assert verify_signature(_header(li=""), BODY, SECRET, is_live=False) is True
    assert verify_signature(_header(te=""), BODY, SECRET, is_live=True) is True


def test_mode_selects_component():
    # 仅有 test 签名时，live 事件校验失败
    assert verify_signature(_header(li=""), BODY, SECRET, is_live=True) is False
    assert verify_signature(_header(te=""), BODY, SECRET, is_live=False) is False


def test_body_is_signed_byte_for_byte():
    header = _header()
    reformatted = b'{"data": {"attributes": {"type": "payment.paid"}}}'
    assert verify_signature(header, reformatted, SECRET, is_live=False) is False
    assert verify_signature(header, BODY.decode(), SECRET, is_live=False) is True


def test_rejections_never_raise():
    good = _header()
    assert verify_signature(None, BODY, SECRET, False) is False
    assert verify_signature("", BODY, SECRET, False) is False
    assert verify_signature(good, BODY, None, False) is False
    assert verify_signature(good, BODY, "", False) is False
    assert verify_signature(good, BODY, "other-secret", False) is False
    assert verify_signature("te=abcd,li=abcd", BODY, SECRET, False) is False
    assert verify_signature("t=1,te=not-hex,li=zz", BODY, SECRET, False) is False
    assert verify_signature("t=1,te=abcd,li=abcd", BODY, SECRET, False) is False


def test_changed_timestamp_invalidates_signature():
    sig = compute_signature("1716800978", BODY, SECRET)
    assert verify_signature(f"t=1716800978,te={sig}", BODY, SECRET, is_live=False) is True
    assert verify_signature(f"t=1716800979,te={sig}", BODY, SECRET, is_live=False) is False
    assert verify_signature(f"t=1716800979,li={sig}", BODY, SECRET, is_live=True) is False


def test_old_timestamp_still_verifies():
    assert verify_signature(_header(t="1"), BODY, SECRET, is_live=False) is True
