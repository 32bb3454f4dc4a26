from media_sync.models.items import (
    LibraryItem,
    LocalItem,
    MediaSource,
    SyncDataRequest,
    local_item_id,
)
from media_sync.models.stats import SyncStats


def test_library_item_accepts_wire_names():
    item = LibraryItem.model_validate(
        {
            "Id": "i1",
            "SeriesId": "s1",
            "SeriesPrimaryImageTag": "t1",
            "ImageTags": {"Primary": "p1"},
            "MediaSources": [{"Container": "mkv", "MediaStreams": []}],
            "UnknownField": True,
        }
    )

    assert item.series_primary_image_tag == "t1"
    assert item.image_tags == {"Primary": "p1"}
    assert item.media_sources[0].container == "mkv"


def test_request_wire_form_omits_nothing_required():
    request = SyncDataRequest(target_id="d1")

    assert request.to_wire() == {
        "TargetId": "d1",
        "LocalItemIds": [],
        "OfflineUserIds": [],
    }


def test_access_comparison_ignores_order_and_duplicates():
    local_item = LocalItem(
        id=local_item_id("srv", "i1"),
        server_id="srv",
        item_id="i1",
        local_path="/media/i1.mkv",
        user_ids_with_access=["u1", "u2"],
        item=LibraryItem(id="i1"),
    )

    assert local_item.has_same_access(["u2", "u1", "u1"])
    assert not local_item.has_same_access(["u1"])
    assert not local_item.has_same_access([])


def test_subtitle_stream_lookup_matches_type_and_index():
    source = MediaSource.model_validate(
        {
            "MediaStreams": [
                {"Index": 1, "Type": "Audio"},
                {"Index": 2, "Type": "Subtitle", "Codec": "srt"},
            ]
        }
    )

    assert source.find_subtitle_stream(2).codec == "srt"
    assert source.find_subtitle_stream(1) is None
    assert source.find_subtitle_stream(None) is None


def test_stats_summary_lists_counters():
    stats = SyncStats(job_items_transferred=2, images_downloaded=3)

    summary = stats.summary()

    assert summary["job_items_transferred"] == 2
    assert summary["images_downloaded"] == 3
