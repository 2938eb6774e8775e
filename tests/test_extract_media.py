from geo_audit.workflows.extract_media import extract_media
from geo_audit.workflows.html_normalize import parse_markup


def _media(body: str):
    return extract_media(parse_markup(f"<html><body>{body}</body></html>"))


def test_alt_coverage_ignores_empty_alt():
    stats = _media(
        '<img src="a.png" alt="A chart">'
        '<img src="b.png" alt="">'
        '<img src="c.png" alt="   ">'
        '<img data-src="lazy.png">'
    )
    assert stats.images == 4
    assert stats.images_with_alt == 1
    assert stats.images_without_alt == 3
    assert stats.images_without_alt_details[-1] == {"src": "lazy.png", "alt": ""}
    assert stats.images_details[0] == {"src": "a.png", "alt": "A chart", "hasAlt": True}


def test_detail_lists_are_bounded():
    stats = _media('<img src="x.png">' * 40)
    assert stats.images_without_alt == 40
    assert len(stats.images_without_alt_details) == 20
    assert len(stats.images_details) == 30


def test_videos_from_native_and_known_hosts():
    stats = _media(
        "<video src='clip.mp4'></video>"
        "<iframe src='https://www.youtube.com/embed/abc'></iframe>"
        "<iframe src='https://player.vimeo.com/video/1'></iframe>"
        "<embed src='https://www.dailymotion.com/embed/video/x'>"
        "<iframe src='https://maps.example.com/embed'></iframe>"
    )
    assert stats.videos == 4


def test_audio_and_optimized_markers():
    stats = _media(
        "<audio src='a.mp3'></audio>"
        "<figure class='geo-image wide'><img src='a.png' alt='a'></figure>"
        "<div class='geo-video'></div>"
        "<div class='geo-audio'></div><div class='geo-audio'></div>"
    )
    assert stats.audios == 1
    assert stats.optimized == {"images": 1, "videos": 1, "audios": 2}


def test_to_dict_field_names():
    payload = _media("<img src='a.png'>").to_dict()
    assert set(payload) == {
        "images",
        "imagesWithAlt",
        "imagesWithoutAlt",
        "imagesWithoutAltDetails",
        "imagesDetails",
        "videos",
        "audios",
        "optimized",
    }
