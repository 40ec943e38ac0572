from trendpulse.grading import grade_for_rank, grades_for


def test_grade_endpoints():
    assert grade_for_rank(1, 1) == 100
    assert grade_for_rank(1, 0) == 100
    for n in range(2, 60):
        assert grade_for_rank(1, n) == 100
        assert grade_for_rank(n, n) == 0


def test_grade_is_monotonic_in_rank():
    for n in (2, 3, 7, 20, 101, 2000):
        grades = [grade_for_rank(r, n) for r in range(1, n + 1)]
        assert all(a >= b for a, b in zip(grades, grades[1:]))


def test_twenty_item_ladder():
    expected = [100, 95, 89, 84, 79, 74, 68, 63, 58, 53, 47, 42, 37, 32, 26, 21, 16, 11, 5, 0]
    assert [grade_for_rank(r, 20) for r in range(1, 21)] == expected
    # no two ranks share a grade at this size
    assert len(set(expected)) == 20


def test_halves_round_up():
    # 100 - 3 * 100 / 200 = 98.5
    assert grade_for_rank(4, 201) == 99


def test_grade_clamped_for_out_of_range_rank():
    assert grade_for_rank(50, 20) == 0
    assert grade_for_rank(0, 20) == 100


def test_vector_grades_match_scalar():
    assert grades_for(0) == []
    assert grades_for(1) == [100]
    for n in range(2, 80):
        assert grades_for(n) == [grade_for_rank(r, n) for r in range(1, n + 1)]
