import unittest

from lib.dedup.matcher import find_duplicates
from lib.dedup.models import (
    Album,
    Artist,
    MatchType,
    PlaylistTrackEntry,
    Track,
    VariationType,
)


def _entry(track_id, name, artist, uri=None):
    track = Track(
        id=track_id,
        name=name,
        uri=uri or f"spotify:track:{track_id}",
        duration_ms=200000,
        artists=(Artist(id="artist1", name=artist),) if artist is not None else (),
        album=Album(id="album1", name="Album Name", images=("https://i.scdn.co/image/album",)),
    )
    return PlaylistTrackEntry(added_at="2024-01-01T00:00:00Z", track=track)


def _tombstone():
    return PlaylistTrackEntry(added_at="2024-01-01T00:00:00Z", track=None)


class FindDuplicatesTests(unittest.TestCase):
    def test_exact_duplicate_by_uri(self):
        left = [_entry("t1", "Song Name", "Artist Name")]
        right = [_entry("t1", "Song Name", "Artist Name")]

        duplicates = find_duplicates(left, right)

        self.assertEqual(len(duplicates), 1)
        self.assertEqual(duplicates[0].match_type, MatchType.EXACT)
        self.assertEqual(duplicates[0].variation_type, VariationType.NONE)
        self.assertEqual(duplicates[0].track.id, "t1")
        self.assertTrue(duplicates[0].in_left and duplicates[0].in_right)

    def test_similar_without_qualifier(self):
        left = [_entry("t1", "Bohemian Rhapsody", "Queen")]
        right = [_entry("t2", "Bohemian Rhapsody", "Queen")]

        duplicates = find_duplicates(left, right)

        self.assertEqual(len(duplicates), 1)
        self.assertEqual(duplicates[0].match_type, MatchType.SIMILAR)
        self.assertEqual(duplicates[0].variation_type, VariationType.NONE)

    def test_similar_remastered_version(self):
        left = [_entry("t1", "Song Name", "Artist Name")]
        right = [_entry("t2", "Song Name (Remastered)", "Artist Name")]

        duplicates = find_duplicates(left, right)

        self.assertEqual(len(duplicates), 1)
        self.assertEqual(duplicates[0].match_type, MatchType.SIMILAR)
        self.assertEqual(duplicates[0].variation_type, VariationType.REMASTER)

    def test_similar_bracketed_edit(self):
        left = [_entry("t1", "Song Name", "Artist")]
        right = [_entry("t2", "Song Name [Radio Edit]", "Artist")]

        duplicates = find_duplicates(left, right)

        self.assertEqual(len(duplicates), 1)
        self.assertEqual(duplicates[0].match_type, MatchType.SIMILAR)
        # "edit" is caught by the remix rule before radio_edit is tried
        self.assertEqual(duplicates[0].variation_type, VariationType.REMIX)

    def test_variation_comes_from_right_track_name(self):
        left = [_entry("t1", "Hotel California (Live)", "Eagles")]
        right = [_entry("t2", "Hotel California", "Eagles")]

        duplicates = find_duplicates(left, right)

        self.assertEqual(duplicates[0].variation_type, VariationType.NONE)

    def test_no_match_for_different_song_or_artist(self):
        left = [_entry("t1", "Song Name", "Artist 1")]
        self.assertEqual(find_duplicates(left, [_entry("t2", "Different Song", "Artist 1")]), [])
        self.assertEqual(find_duplicates(left, [_entry("t3", "Song Name", "Artist 2")]), [])

    def test_case_and_whitespace_insensitive(self):
        left = [_entry("t1", "SONG  NAME", "ARTIST NAME")]
        right = [_entry("t2", "song    name", "artist name")]

        duplicates = find_duplicates(left, right)

        self.assertEqual(len(duplicates), 1)
        self.assertEqual(duplicates[0].match_type, MatchType.SIMILAR)

    def test_featuring_in_parentheses(self):
        left = [_entry("t1", "Song Name (feat. Other Artist)", "Main Artist")]
        right = [_entry("t2", "Song Name", "Main Artist")]

        duplicates = find_duplicates(left, right)

        self.assertEqual(len(duplicates), 1)
        self.assertEqual(duplicates[0].match_type, MatchType.SIMILAR)

    def test_exact_takes_precedence_over_signature(self):
        left = [
            _entry("t2", "Other Name", "Someone"),
            _entry("t1", "Song", "Artist"),
        ]
        right = [_entry("t1", "Song", "Artist")]

        duplicates = find_duplicates(left, right)

        self.assertEqual([d.match_type for d in duplicates], [MatchType.EXACT])

    def test_empty_sides(self):
        some = [_entry("t1", "Song", "Artist")]
        self.assertEqual(find_duplicates([], []), [])
        self.assertEqual(find_duplicates([], some), [])
        self.assertEqual(find_duplicates(some, []), [])

    def test_comparing_a_list_with_itself(self):
        tracks = [_entry(f"t{i}", f"Song {i}", "Artist") for i in range(10)]

        duplicates = find_duplicates(tracks, tracks)

        self.assertEqual(len(duplicates), 10)
        self.assertTrue(all(d.match_type is MatchType.EXACT for d in duplicates))
        self.assertTrue(all(d.variation_type is VariationType.NONE for d in duplicates))

    def test_repeated_uri_on_right_reported_once(self):
        left = [_entry("t1", "Song", "Artist")]
        right = [_entry("t1", "Song", "Artist"), _entry("t1", "Song", "Artist")]

        self.assertEqual(len(find_duplicates(left, right)), 1)

    def test_repeated_similar_uri_on_right_reported_once(self):
        left = [_entry("t1", "Song", "Artist")]
        right = [_entry("t2", "Song (Live)", "Artist"), _entry("t2", "Song (Live)", "Artist")]

        duplicates = find_duplicates(left, right)

        self.assertEqual(len(duplicates), 1)
        self.assertEqual(duplicates[0].variation_type, VariationType.LIVE)

    def test_output_uris_are_distinct_and_in_right_order(self):
        left = [_entry("a", "A", "X"), _entry("b", "B", "X"), _entry("c", "C", "X")]
        right = [
            _entry("c", "C", "X"),
            _entry("b2", "B (Demo)", "X"),
            _entry("zz", "Nothing", "Y"),
            _entry("a", "A", "X"),
            _entry("c", "C", "X"),
        ]

        uris = [d.uri for d in find_duplicates(left, right)]

        self.assertEqual(uris, ["spotify:track:c", "spotify:track:b2", "spotify:track:a"])
        self.assertEqual(len(uris), len(set(uris)))

    def test_null_tracks_are_skipped(self):
        left = [_tombstone(), _entry("t1", "Song", "Artist")]
        right = [_tombstone(), _entry("t1", "Song", "Artist"), _tombstone()]

        duplicates = find_duplicates(left, right)

        self.assertEqual(len(duplicates), 1)

    def test_tracks_without_artists_share_unknown_bucket(self):
        left = [_entry("t1", "Intro", None)]
        right = [_entry("t2", "Intro", None)]

        duplicates = find_duplicates(left, right)

        self.assertEqual(len(duplicates), 1)
        self.assertEqual(duplicates[0].match_type, MatchType.SIMILAR)

    def test_first_left_track_owns_the_signature(self):
        # both left tracks normalize to "song|artist"; t2 stays reachable by uri
        left = [_entry("t1", "Song", "Artist"), _entry("t2", "Song (Live)", "Artist")]
        right = [_entry("t2", "Song (Live)", "Artist"), _entry("t3", "Song [Demo]", "Artist")]

        duplicates = find_duplicates(left, right)

        self.assertEqual(
            [(d.track.id, d.match_type) for d in duplicates],
            [("t2", MatchType.EXACT), ("t3", MatchType.SIMILAR)],
        )

    def test_mix_of_exact_and_similar(self):
        left = [
            _entry("t1", "Song A", "Artist 1"),
            _entry("t2", "Song B", "Artist 2"),
            _entry("t3", "Song C", "Artist 3"),
        ]
        right = [
            _entry("t1", "Song A", "Artist 1"),
            _entry("t4", "Song B (Remastered)", "Artist 2"),
            _entry("t5", "Song D", "Artist 4"),
        ]

        duplicates = find_duplicates(left, right)

        self.assertEqual(
            [(d.match_type, d.variation_type) for d in duplicates],
            [
                (MatchType.EXACT, VariationType.NONE),
                (MatchType.SIMILAR, VariationType.REMASTER),
            ],
        )

    def test_large_playlists(self):
        left = [_entry(f"track{i}", f"Song {i}", f"Artist {i}") for i in range(200)]
        right = [_entry(f"track{i}", f"Song {i}", f"Artist {i}") for i in range(50)] + [
            _entry(f"track{i}", f"Song {i}", f"Artist {i}") for i in range(200, 350)
        ]

        duplicates = find_duplicates(left, right)

        self.assertEqual(len(duplicates), 50)
        self.assertTrue(all(d.match_type is MatchType.EXACT for d in duplicates))

    def test_to_dict_wire_shape(self):
        left = [_entry("t1", "Song", "Artist")]
        right = [_entry("t2", "Song", "Artist")]

        payload = find_duplicates(left, right)[0].to_dict()

        self.assertEqual(payload["matchType"], "similar")
        self.assertIsNone(payload["variationType"])
        self.assertTrue(payload["inLeft"])
        self.assertTrue(payload["inRight"])
        self.assertEqual(payload["track"]["uri"], "spotify:track:t2")
        self.assertEqual(payload["track"]["artists"], [{"id": "artist1", "name": "Artist"}])
        self.assertEqual(payload["track"]["album"]["images"], [{"url": "https://i.scdn.co/image/album"}])


if __name__ == "__main__":
    unittest.main()
