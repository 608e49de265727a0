from collections import Counter

import pytest

from fhe_transpiler.abstract_transpiler import TranspilerError
from fhe_transpiler.ir import ArrayType, BitsType, FunctionBuilder
from fhe_transpiler.metadata import FunctionParameter, FunctionPrototype, MetadataOutput
from fhe_transpiler.tfhe_transpiler import TfheTranspiler


def create_output_element(builder, bit_width, name=None):
    elements = [builder.literal(1, BitsType(1)) for _ in range(bit_width)]
    return builder.concat(elements, name)


def metadata_with(params=(), returns_void=False):
    return MetadataOutput(
        FunctionPrototype(name="", params=list(params), returns_void=returns_void)
    )


def lines_of(actual):
    return Counter(actual.removesuffix("\n").split("\n"))


def copy_line(target, index, node_id):
    return f"  bootsCOPY(&{target}[{index}], temp_nodes[{node_id}], bk);"


def test_collect_outputs_smoke():
    pure_width, in_out_width = 8, 16
    builder = FunctionBuilder("smoke")
    pure_return = create_output_element(builder, pure_width, "pure_return")
    in_out_return = create_output_element(builder, in_out_width, "in_out_param_value")
    builder.param("in_out_param", BitsType(in_out_width))
    in_out_tuple = builder.tuple([in_out_return])
    final_tuple = builder.tuple([pure_return, in_out_tuple])
    function = builder.build(final_tuple)

    expected = [copy_line("result", pure_width - i - 1, i + 1) for i in range(pure_width)]
    expected += [
        copy_line("in_out_param", in_out_width - i - 1, pure_width + 2 + i)
        for i in range(in_out_width)
    ]
    metadata = metadata_with([FunctionParameter("in_out_param", is_reference=True)])

    actual = TfheTranspiler.collect_outputs(function, metadata)
    assert lines_of(actual) == Counter(expected)


def test_collect_outputs_no_output():
    builder = FunctionBuilder("test_fn")
    empty_tuple = builder.literal(())
    function = builder.build(empty_tuple)
    assert TfheTranspiler.collect_outputs(function, MetadataOutput()) == ""


def test_collect_outputs_only_pure():
    width = 64
    builder = FunctionBuilder("test_fn")
    pure_return = create_output_element(builder, width, "pure_return")
    function = builder.build(pure_return)
    expected = [copy_line("result", width - i - 1, i + 1) for i in range(width)]

    actual = TfheTranspiler.collect_outputs(function, MetadataOutput())
    assert lines_of(actual) == Counter(expected)


def test_collect_outputs_only_in_out():
    width = 64
    builder = FunctionBuilder("test_fn")
    in_out_return = create_output_element(builder, width, "in_out_return")
    in_out_tuple = builder.tuple([in_out_return])
    final_tuple = builder.tuple([in_out_tuple])
    function = builder.build(final_tuple)
    expected = [copy_line("result", width - i - 1, i + 1) for i in range(width)]
    metadata = metadata_with([FunctionParameter("in_out_param")])

    actual = TfheTranspiler.collect_outputs(function, metadata)
    assert lines_of(actual) == Counter(expected)


def test_collect_outputs_multiple_in_out():
    pure_width, num_in_out, in_out_width = 8, 3, 8
    builder = FunctionBuilder("test_fn")
    outputs = [create_output_element(builder, pure_width, "pure_return")]
    names = [f"in_out_{i}" for i in range(num_in_out)]
    for name in names:
        outputs.append(create_output_element(builder, in_out_width, name))
    function = builder.build(builder.tuple(outputs))

    output_idx = 1
    expected = []
    for i in range(pure_width):
        expected.append(copy_line("result", pure_width - i - 1, output_idx))
        output_idx += 1
    for name in names:
        output_idx += 1
        for j in range(in_out_width):
            expected.append(copy_line(name, in_out_width - j - 1, output_idx))
            output_idx += 1

    metadata = metadata_with([FunctionParameter(n, is_reference=True) for n in names])
    actual = TfheTranspiler.collect_outputs(function, metadata)
    assert lines_of(actual) == Counter(expected)


def test_collect_outputs_pure_array():
    width, count = 8, 4
    builder = FunctionBuilder("test_fn")
    elements = [create_output_element(builder, width, f"element_{i}") for i in range(count)]
    pure_array = builder.array(elements, BitsType(width))
    in_out_tuple = builder.tuple([])
    function = builder.build(builder.tuple([pure_array, in_out_tuple]))

    expected = []
    temp_index = 0
    for i in range(count):
        temp_index += 1
        for j in range(width):
            expected.append(copy_line("result", i * width + width - j - 1, temp_index))
            temp_index += 1

    metadata = metadata_with([FunctionParameter("in_out_param", is_reference=True)])
    actual = TfheTranspiler.collect_outputs(function, metadata)
    assert lines_of(actual) == Counter(expected)


def test_collect_outputs_skips_const_and_non_refs():
    array_elements, element_bits, pure_width = 4, 8, 8
    builder = FunctionBuilder("test_fn")
    create_output_element(builder, pure_width, "pure_return_unused")

    i8_type = BitsType(element_bits)
    builder.param("const_ref", ArrayType(4, i8_type))
    builder.param("non_const_ref", ArrayType(4, i8_type))
    builder.param("non_const_non_ref", i8_type)
    builder.param("const_non_ref", i8_type)

    bit_zero = builder.literal(0, BitsType(1))
    bit_one = builder.literal(1, BitsType(1))
    new_elements = [
        builder.concat([bit_one if j & 1 else bit_zero for j in range(element_bits)])
        for _ in range(array_elements)
    ]
    outputs = [
        create_output_element(builder, pure_width, "pure_return"),
        builder.array(new_elements, i8_type),
    ]
    function = builder.build(builder.tuple(outputs))

    metadata = metadata_with(
        [
            FunctionParameter("const_ref", is_const=True, is_reference=True),
            FunctionParameter("non_const_ref", is_const=False, is_reference=True),
            FunctionParameter("non_const_non_ref", is_const=False, is_reference=False),
            FunctionParameter("const_non_ref", is_const=True, is_reference=False),
        ]
    )

    expected = [copy_line("result", pure_width - i - 1, 20 + i) for i in range(pure_width)]
    current_bit = array_elements * element_bits - 1
    for _ in range(array_elements):
        for j in range(element_bits):
            expected.append(copy_line("non_const_ref", current_bit, 15 if j & 1 else 14))
            current_bit -= 1

    actual = TfheTranspiler.collect_outputs(function, metadata)
    assert lines_of(actual) == Counter(expected)


def test_collect_outputs_pure_2d_array():
    width, top_count, sub_count = 8, 4, 4
    builder = FunctionBuilder("test_fn")
    leaf_type = BitsType(width)
    subarray_type = ArrayType(sub_count, leaf_type)

    elements = []
    for i in range(top_count):
        subs = [
            create_output_element(builder, width, f"element_{i}_{j}")
            for j in range(sub_count)
        ]
        elements.append(builder.array(subs, leaf_type))
    pure_array = builder.array(elements, subarray_type)
    in_out_tuple = builder.tuple([])
    function = builder.build(builder.tuple([pure_array, in_out_tuple]))

    expected = []
    temp_index = -1
    for top in range(top_count):
        temp_index += 1
        for sub in range(sub_count):
            temp_index += 1
            for bit in range(width):
                offset = (
                    top * subarray_type.flat_bit_count()
                    + sub * leaf_type.flat_bit_count()
                    + width
                    - bit
                    - 1
                )
                expected.append(copy_line("result", offset, temp_index))
                temp_index += 1

    metadata = metadata_with([FunctionParameter("in_out_param", is_reference=True)])
    actual = TfheTranspiler.collect_outputs(function, metadata)
    assert lines_of(actual) == Counter(expected)


def _pure_function():
    builder = FunctionBuilder("test_fn")
    pure_return = create_output_element(builder, 64, "pure_return")
    return builder.build(pure_return)


def test_function_signature_only_pure():
    signature = TfheTranspiler.function_signature(_pure_function(), metadata_with())
    assert signature == (
        "absl::Status test_fn(LweSample* result,\n"
        "  const TFheGateBootstrappingCloudKeySet* bk)"
    )


def test_prelude_only_pure():
    prelude = TfheTranspiler.prelude(_pure_function(), metadata_with())
    assert prelude == (
        "#include <unordered_map>\n"
        "\n"
        '#include "absl/status/status.h"\n'
        '#include "tfhe/tfhe.h"\n'
        '#include "tfhe/tfhe_io.h"\n'
        "\n"
        "absl::Status test_fn(LweSample* result,\n"
        "  const TFheGateBootstrappingCloudKeySet* bk) {\n"
        "  std::unordered_map<int, LweSample*> temp_nodes;\n"
        "\n"
    )


def test_conclusion():
    assert TfheTranspiler.conclusion() == (
        "  for (auto pair : temp_nodes) {\n"
        "    delete_gate_bootstrapping_ciphertext(pair.second);\n"
        "  }\n"
        "  return absl::OkStatus();\n"
        "}\n"
    )


def _expected_header(guard, signature):
    return (
        f"#ifndef {guard}\n"
        f"#define {guard}\n"
        "\n"
        '#include "absl/status/status.h"\n'
        '#include "tfhe/tfhe.h"\n'
        '#include "tfhe/tfhe_io.h"\n'
        "\n"
        f"{signature};\n"
        f"#endif  // {guard}\n"
    )


def test_translate_header_no_param():
    builder = FunctionBuilder("test_fn")
    function = builder.build(builder.literal(()))
    metadata = metadata_with(returns_void=True)

    actual = TfheTranspiler.translate_header(function, metadata, "a/b/c/test.h")
    assert actual == _expected_header(
        "TEST_H_", "absl::Status test_fn(const TFheGateBootstrappingCloudKeySet* bk)"
    )


def test_translate_header_param():
    builder = FunctionBuilder("test_fn")
    builder.param("param", BitsType(32))
    function = builder.build()
    metadata = metadata_with([FunctionParameter("param")], returns_void=True)

    actual = TfheTranspiler.translate_header(function, metadata, "test.h")
    assert actual == _expected_header(
        "TEST_H_",
        "absl::Status test_fn(LweSample* param,\n"
        "  const TFheGateBootstrappingCloudKeySet* bk)",
    )


def test_translate_header_multiple_params():
    param_count = 5
    builder = FunctionBuilder("test_fn")
    params = []
    for index in range(param_count):
        name = f"param_{index}"
        builder.param(name, BitsType(32))
        params.append(FunctionParameter(name))
    function = builder.build()
    metadata = metadata_with(params, returns_void=True)

    expected_params = ", ".join(f"LweSample* param_{i}" for i in range(param_count))
    actual = TfheTranspiler.translate_header(function, metadata, "test.h")
    assert actual == _expected_header(
        "TEST_H_",
        f"absl::Status test_fn({expected_params},\n"
        "  const TFheGateBootstrappingCloudKeySet* bk)",
    )


def test_translate_header_stdout_guard():
    builder = FunctionBuilder("test_fn")
    function = builder.build(builder.literal(()))
    actual = TfheTranspiler.translate_header(function, metadata_with(returns_void=True), "-")
    assert actual.startswith("#ifndef FHE_GENERATE_H_\n#define FHE_GENERATE_H_\n")


def test_param_bit_reference_single_bit():
    builder = FunctionBuilder("test_fn")
    param = builder.param("param_0", BitsType(1))
    assert TfheTranspiler.param_bit_reference(param, 0) == "param_0"


def test_param_bit_reference_multiple_bits():
    width = 8
    builder = FunctionBuilder("test_fn")
    param = builder.param("param_0", BitsType(width))
    for i in range(width):
        assert TfheTranspiler.param_bit_reference(param, i) == f"&param_0[{i}]"


def test_param_bit_reference_single_bit_array_index_uses_source_name():
    builder = FunctionBuilder("test_fn")
    array = builder.param("arr", ArrayType(4, BitsType(1)))
    index = builder.literal(2, BitsType(8))
    element = builder.array_index(array, [index])
    assert TfheTranspiler.param_bit_reference(element, 2) == "arr"


def test_output_bit_reference():
    assert TfheTranspiler.output_bit_reference("result", 3) == "&result[3]"


def test_initialize_node():
    builder = FunctionBuilder("test_fn")
    param = builder.param("param_0", BitsType(8))
    assert TfheTranspiler.initialize_node(param) == (
        f"  temp_nodes[{param.id}] = new_gate_bootstrapping_ciphertext(bk->params);\n"
    )


def test_execute_and_op():
    builder = FunctionBuilder("test_fn")
    lhs = create_output_element(builder, 8, "param_0")
    rhs = create_output_element(builder, 8, "param_1")
    and_op = builder.and_(lhs, rhs, "param_0_and_param_1")
    assert TfheTranspiler.execute(and_op) == (
        f"  bootsAND(temp_nodes[{and_op.id}], temp_nodes[{lhs.id}], "
        f"temp_nodes[{rhs.id}], bk);\n\n"
    )


def test_execute_or_op():
    builder = FunctionBuilder("test_fn")
    lhs = create_output_element(builder, 32, "param_0")
    rhs = create_output_element(builder, 32, "param_1")
    or_op = builder.or_(lhs, rhs, "param_0_or_param_1")
    assert TfheTranspiler.execute(or_op) == (
        f"  bootsOR(temp_nodes[{or_op.id}], temp_nodes[{lhs.id}], "
        f"temp_nodes[{rhs.id}], bk);\n\n"
    )


def test_execute_not_op():
    builder = FunctionBuilder("test_fn")
    param = create_output_element(builder, 64, "param_0")
    not_op = builder.not_(param, "not_param_0")
    assert TfheTranspiler.execute(not_op) == (
        f"  bootsNOT(temp_nodes[{not_op.id}], temp_nodes[{param.id}], bk);\n\n"
    )


def test_execute_invalid_op():
    builder = FunctionBuilder("test_fn")
    lhs = create_output_element(builder, 16, "param_0")
    rhs = create_output_element(builder, 16, "param_1")
    eq_op = builder.eq(lhs, rhs, "param_0_eq_param_1")
    with pytest.raises(TranspilerError):
        TfheTranspiler.execute(eq_op)


@pytest.mark.parametrize("value", [1, 0])
def test_execute_single_bit_literal(value):
    builder = FunctionBuilder("test_fn")
    literal = builder.literal(value, BitsType(1))
    assert TfheTranspiler.execute(literal) == (
        f"  bootsCONSTANT(temp_nodes[{literal.id}], {value}, bk);\n\n"
    )


def test_execute_unsupported_literal():
    builder = FunctionBuilder("test_fn")
    param = create_output_element(builder, 16, "param_0")
    with pytest.raises(TranspilerError):
        TfheTranspiler.execute(param)


def test_execute_wide_literal_used_as_array_index_emits_nothing():
    builder = FunctionBuilder("test_fn")
    array = builder.param("arr", ArrayType(4, BitsType(8)))
    index = builder.literal(3, BitsType(8))
    builder.array_index(array, [index])
    assert TfheTranspiler.execute(index) == ""


def test_execute_wide_literal_with_other_user_is_rejected():
    builder = FunctionBuilder("test_fn")
    lhs = builder.literal(3, BitsType(8))
    rhs = builder.param("x", BitsType(8))
    builder.and_(lhs, rhs)
    with pytest.raises(TranspilerError, match="Unsupported literal value"):
        TfheTranspiler.execute(lhs)


def test_translate_single_gate_function():
    builder = FunctionBuilder("fn")
    a = builder.param("a", BitsType(1))
    b = builder.param("b", BitsType(1))
    result = builder.and_(a, b)
    function = builder.build(result)
    metadata = metadata_with([FunctionParameter("a"), FunctionParameter("b")])

    actual = TfheTranspiler.translate(function, metadata)
    assert actual == (
        "#include <unordered_map>\n"
        "\n"
        '#include "absl/status/status.h"\n'
        '#include "tfhe/tfhe.h"\n'
        '#include "tfhe/tfhe_io.h"\n'
        "\n"
        "absl::Status fn(LweSample* result, LweSample* a, LweSample* b,\n"
        "  const TFheGateBootstrappingCloudKeySet* bk) {\n"
        "  std::unordered_map<int, LweSample*> temp_nodes;\n"
        "\n"
        "  temp_nodes[3] = new_gate_bootstrapping_ciphertext(bk->params);\n"
        "  bootsAND(temp_nodes[3], temp_nodes[1], temp_nodes[2], bk);\n"
        "\n"
        "  bootsCOPY(&result[0], temp_nodes[3], bk);\n"
        "  for (auto pair : temp_nodes) {\n"
        "    delete_gate_bootstrapping_ciphertext(pair.second);\n"
        "  }\n"
        "  return absl::OkStatus();\n"
        "}\n"
    )


def test_translate_bit_slice_copies_param_bit():
    builder = FunctionBuilder("fn")
    x = builder.param("x", BitsType(4))
    sliced = builder.bit_slice(x, 2, 1)
    function = builder.build(sliced)
    actual = TfheTranspiler.translate(function, metadata_with([FunctionParameter("x")]))
    assert "  bootsCOPY(temp_nodes[2], &x[2], bk);\n\n" in actual
    assert "  bootsCOPY(&result[0], temp_nodes[2], bk);\n" in actual