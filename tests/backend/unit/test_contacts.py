from giftexchange.backend.contacts import extract_steam_id64


def test_extract_steam_id64_reads_partner_from_trade_link() -> None:
    link = "https://steamcommunity.com/tradeoffer/new/?partner=1184358194&token=AbCdEf"

    assert extract_steam_id64(link) == "76561199144623922"


def test_extract_steam_id64_returns_none_without_partner() -> None:
    assert extract_steam_id64("https://steamcommunity.com/tradeoffer/new/?token=AbCdEf") is None
    assert extract_steam_id64("not a link") is None
