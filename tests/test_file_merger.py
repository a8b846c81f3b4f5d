"""Tests for merging parsed files into the accumulated file set."""

from codegen import FileSet, diff_file_sets, merge_generated_files
from codegen.file_merger import looks_like_failed_generation, should_replace
from config import Settings
from contracts import GeneratedFile


BASE_PAGE = """import { Button } from '@/components/ui/button'

export default function Page() {
  return (
    <main className="p-8">
      <h1>Welcome to the shop</h1>
      <Button>Browse</Button>
    </main>
  )
}
"""


def gen(path: str, content: str, iteration: int = 1) -> GeneratedFile:
    return GeneratedFile(path=path, content=content, iteration=iteration)


class TestMergeGeneratedFiles:
    """Test merge precedence and filtering."""

    def test_merge_with_nothing_new_is_identity(self):
        existing: FileSet = {"app/page.tsx": gen("app/page.tsx", BASE_PAGE)}
        merged = merge_generated_files(existing, [])
        assert merged == existing
        assert merged is not existing

    def test_inputs_not_mutated(self):
        existing = {"app/page.tsx": gen("app/page.tsx", BASE_PAGE)}
        merge_generated_files(existing, [gen("lib/utils.ts", "export const cn = () => ''", 2)])
        assert list(existing) == ["app/page.tsx"]

    def test_new_paths_are_added(self):
        merged = merge_generated_files([], [gen("app/page.tsx", BASE_PAGE), gen("lib/utils.ts", "export const x = 1")])
        assert list(merged) == ["app/page.tsx", "lib/utils.ts"]

    def test_large_change_replaces(self):
        existing = {"app/page.tsx": gen("app/page.tsx", BASE_PAGE, 1)}
        bigger = BASE_PAGE + "\n" + "// more content\n" * 10
        merged = merge_generated_files(existing, [gen("app/page.tsx", bigger, 2)])
        assert merged["app/page.tsx"].content == bigger
        assert merged["app/page.tsx"].iteration == 2

    def test_near_identical_reemission_keeps_prior(self):
        existing = {"app/page.tsx": gen("app/page.tsx", BASE_PAGE, 1)}
        same_head = BASE_PAGE.replace("shop", "shoP")
        merged = merge_generated_files(existing, [gen("app/page.tsx", same_head, 2)])
        assert merged["app/page.tsx"].content == BASE_PAGE
        assert merged["app/page.tsx"].iteration == 1

    def test_truncated_reemission_keeps_larger_prior(self):
        large = BASE_PAGE + "".join(f"export const item{i} = {{ id: {i}, label: 'Item {i}' }}\n" for i in range(100))
        existing = {"app/page.tsx": gen("app/page.tsx", large, 1)}
        merged = merge_generated_files(existing, [gen("app/page.tsx", large[:300], 2)])
        assert merged["app/page.tsx"].content == large
        assert merged["app/page.tsx"].iteration == 1

    def test_shorter_rewrite_with_new_head_replaces(self):
        existing = {"app/page.tsx": gen("app/page.tsx", BASE_PAGE + "// filler\n" * 20, 1)}
        short = "export default function Page() {\n  return <main>Closed for the holidays</main>\n}\n"
        merged = merge_generated_files(existing, [gen("app/page.tsx", short, 2)])
        assert merged["app/page.tsx"].content == short

    def test_different_head_same_length_replaces(self):
        existing = {"app/page.tsx": gen("app/page.tsx", BASE_PAGE, 1)}
        rewritten = BASE_PAGE.replace("Page", "Home")
        merged = merge_generated_files(existing, [gen("app/page.tsx", rewritten, 2)])
        assert merged["app/page.tsx"].content == rewritten

    def test_too_short_content_skipped(self):
        merged = merge_generated_files({}, [gen("lib/a.ts", "x")])
        assert merged == {}

    def test_refusals_skipped(self):
        existing = {"app/page.tsx": gen("app/page.tsx", BASE_PAGE)}
        refusal = gen("app/page.tsx", "I apologize, but I cannot generate this page. " * 3, 2)
        error = gen("lib/db.ts", "Error: database connection failed")
        merged = merge_generated_files(existing, [refusal, error])
        assert merged["app/page.tsx"].content == BASE_PAGE
        assert "lib/db.ts" not in merged

    def test_key_order_is_first_appearance(self):
        existing = {"a.ts": gen("a.ts", "export const a = 1"), "b.ts": gen("b.ts", "export const b = 1")}
        replacement = gen("a.ts", "export const a = 2;\n" + "// rewritten\n" * 10, 2)
        merged = merge_generated_files(existing, [gen("c.ts", "export const c = 1"), replacement])
        assert list(merged) == ["a.ts", "b.ts", "c.ts"]

    def test_thresholds_from_config(self):
        config = Settings(merge_length_delta_threshold=0, min_file_content_length=1)
        existing = {"a.ts": gen("a.ts", "export const a = 1")}
        merged = merge_generated_files(existing, [gen("a.ts", "export const a = 12", 2)], config)
        assert merged["a.ts"].content == "export const a = 12"


class TestHelpers:
    """Test replacement and refusal heuristics."""

    def test_should_replace(self):
        assert should_replace("abc", "abc" + "x" * 60)
        assert not should_replace("abcdef", "abcdef")
        assert should_replace("abcdef", "zzzzzz")
        assert not should_replace("abc" + "x" * 60, "abc")

    def test_looks_like_failed_generation(self):
        assert looks_like_failed_generation("  Error: something broke")
        assert looks_like_failed_generation("// I'm sorry, but I can't")
        assert not looks_like_failed_generation("const error = new Error('x')")


class TestDiffFileSets:
    """Test created/updated path detection."""

    def test_diff(self):
        before = {"app/page.tsx": gen("app/page.tsx", BASE_PAGE)}
        after = {
            "app/page.tsx": gen("app/page.tsx", BASE_PAGE + "// changed"),
            "lib/utils.ts": gen("lib/utils.ts", "export const x = 1"),
        }
        created, updated = diff_file_sets(before, after)
        assert created == ["lib/utils.ts"]
        assert updated == ["app/page.tsx"]

    def test_unchanged(self):
        files = {"app/page.tsx": gen("app/page.tsx", BASE_PAGE)}
        assert diff_file_sets(files, dict(files)) == ([], [])
